import pytest
from pydantic import ValidationError

from oanda_stream.settings import DEFAULT_CONFIG, Settings, StreamGroup, load_settings


def test_repo_config_loads(monkeypatch):
    monkeypatch.delenv("OANDA_ENV", raising=False)
    s = load_settings()
    assert s.oanda.env == "practice"
    assert s.oanda.base == "https://api-fxpractice.oanda.com"
    assert s.oanda.stream_base == "https://stream-fxpractice.oanda.com"
    assert s.stream.groups[0].account == "primary"
    assert "USD_CAD" in s.stream.groups[0].instruments
    assert s.stream.sink == "console"
    assert s.database.url.startswith("sqlite+aiosqlite")


def test_oanda_env_overrides_file(monkeypatch):
    monkeypatch.setenv("OANDA_ENV", "LIVE")
    s = load_settings(DEFAULT_CONFIG)
    assert s.oanda.env == "live"
    assert s.oanda.base == "https://api-fxtrade.oanda.com"
    assert s.oanda.stream_base == "https://stream-fxtrade.oanda.com"


def test_env_vars_expand_and_missing_sections_default(tmp_path, monkeypatch):
    monkeypatch.delenv("OANDA_ENV", raising=False)
    monkeypatch.setenv("TICKS_DB_URL", "postgresql+asyncpg://u:p@db/ticks")
    cfg = tmp_path / "settings.yaml"
    cfg.write_text(
        "stream:\n"
        "  sink: database\n"
        "  groups:\n"
        "    - instruments: [EUR_USD]\n"
        "database:\n"
        "  url: ${TICKS_DB_URL}\n"
    )
    s = load_settings(cfg)
    assert s.database.url == "postgresql+asyncpg://u:p@db/ticks"
    assert s.stream.groups[0].account is None
    assert s.oanda.account == "primary"
    assert s.telemetry.tracing_provider == "none"
    assert s.logging.level == "INFO"


def test_empty_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("OANDA_ENV", raising=False)
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("")
    assert load_settings(cfg) == Settings()


def test_unknown_sink_rejected(tmp_path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("stream:\n  sink: kafka\n")
    with pytest.raises(ValidationError):
        load_settings(cfg)


def test_group_needs_instruments():
    with pytest.raises(ValidationError):
        StreamGroup(instruments=[])


def test_default_instances_do_not_share_state():
    a, b = Settings(), Settings()
    a.stream.sink = "database"
    assert b.stream.sink == "console"
