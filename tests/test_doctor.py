import json

import pytest

from oanda_stream.errors import ProviderError
from oanda_stream.tools import data_oanda
from oanda_stream.tools.data_models import AccountSummary
from scripts import doctor


def _config(tmp_path, sink="console", credentials=None):
    creds = tmp_path / "res.json"
    if credentials is not None:
        creds.write_text(json.dumps(credentials))
    cfg = tmp_path / "settings.yaml"
    cfg.write_text(
        "oanda:\n"
        f"  credentials_path: {creds}\n"
        "stream:\n"
        f"  sink: {sink}\n"
        "database:\n"
        f"  url: sqlite+aiosqlite:///{tmp_path / 'ticks.db'}\n"
    )
    return cfg


CREDS = {"primary": {"id": "101-001-1-001", "token": "t"}}


@pytest.mark.asyncio
async def test_all_checks_pass(tmp_path, monkeypatch, capsys):
    async def fake_summary(account_id, token, **kwargs):
        return AccountSummary(id=account_id, alias="Primary", currency="USD", balance="100")

    monkeypatch.delenv("OANDA_ENV", raising=False)
    monkeypatch.setattr(data_oanda, "account_summary", fake_summary)
    failures = await doctor.run_diagnostics(_config(tmp_path, sink="database", credentials=CREDS))
    out = capsys.readouterr().out
    assert failures == 0
    assert "Currency: USD" in out
    assert "Database is reachable" in out


@pytest.mark.asyncio
async def test_rest_failure_is_counted(tmp_path, monkeypatch, capsys):
    async def failing_summary(account_id, token, **kwargs):
        raise ProviderError("GET ... returned 401: Insufficient authorization", status_code=401)

    monkeypatch.setattr(data_oanda, "account_summary", failing_summary)
    failures = await doctor.run_diagnostics(_config(tmp_path, credentials=CREDS))
    out = capsys.readouterr().out
    assert failures == 1
    assert "Insufficient authorization" in out
    assert "SKIPPED: stream.sink" in out


@pytest.mark.asyncio
async def test_missing_credentials_skip_rest_check(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("OANDA_ACCOUNT_ID", raising=False)
    monkeypatch.delenv("OANDA_API_KEY", raising=False)
    failures = await doctor.run_diagnostics(_config(tmp_path))
    out = capsys.readouterr().out
    assert failures == 1
    assert "SKIPPED: no credentials" in out


@pytest.mark.asyncio
async def test_bad_config(tmp_path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("stream:\n  sink: kafka\n")
    assert await doctor.run_diagnostics(cfg) == 1
