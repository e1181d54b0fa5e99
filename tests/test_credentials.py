import json

import pytest

from oanda_stream.credentials import Credential, CredentialStore
from oanda_stream.errors import CredentialsError


def _write(tmp_path, data) -> str:
    path = tmp_path / "res.json"
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return str(path)


def test_load_aliases(tmp_path):
    path = _write(tmp_path, {
        "primary": {"id": "101-001-1-001", "token": "aaa"},
        "secondary": {"id": "101-001-1-002", "token": "bbb"},
    })
    store = CredentialStore.load(path)
    assert len(store) == 2
    assert store.aliases == ["primary", "secondary"]
    assert "secondary" in store
    assert store.get("secondary") == Credential(id="101-001-1-002", token="bbb")


def test_token_not_in_repr():
    assert "aaa" not in repr(Credential(id="101", token="aaa"))


def test_unknown_alias_lists_known(tmp_path):
    store = CredentialStore.load(_write(tmp_path, {"primary": {"id": "1", "token": "t"}}))
    with pytest.raises(CredentialsError, match="primary"):
        store.get("tertiary")


@pytest.mark.parametrize("content", [
    "{not json",
    {"primary": {"id": "1"}},
    {"primary": {"id": "", "token": "t"}},
    {"primary": "101-001"},
    {},
])
def test_bad_files_raise(tmp_path, content):
    with pytest.raises(CredentialsError):
        CredentialStore.load(_write(tmp_path, content))


def test_missing_file_falls_back_to_env(tmp_path, monkeypatch):
    monkeypatch.setenv("OANDA_ACCOUNT_ID", "101-001-9-001")
    monkeypatch.setenv("OANDA_API_KEY", "envtoken")
    store = CredentialStore.load(tmp_path / "missing.json")
    assert store.aliases == ["primary"]
    assert store.get("primary").token == "envtoken"


def test_missing_file_without_env(tmp_path, monkeypatch):
    monkeypatch.delenv("OANDA_ACCOUNT_ID", raising=False)
    monkeypatch.delenv("OANDA_API_KEY", raising=False)
    with pytest.raises(CredentialsError, match="not found"):
        CredentialStore.load(tmp_path / "missing.json")
