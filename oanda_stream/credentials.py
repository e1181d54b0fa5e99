from __future__ import annotations
import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from oanda_stream.errors import CredentialsError


class Credential(BaseModel):
    id: str = Field(min_length=1)
    token: str = Field(min_length=1, repr=False)


_ACCOUNTS = TypeAdapter(dict[str, Credential])


class CredentialStore:
    """
    Account alias -> Credential, read once from a JSON file such as:

        {"primary": {"id": "101-...", "token": "..."}}

    When the file does not exist, OANDA_ACCOUNT_ID / OANDA_API_KEY provide a
    single "primary" entry.
    """

    def __init__(self, accounts: dict[str, Credential]):
        self._accounts = dict(accounts)

    @classmethod
    def load(cls, path: Path | str) -> "CredentialStore":
        path = Path(path)
        if not path.exists():
            env_store = cls.from_env()
            if env_store is not None:
                return env_store
            raise CredentialsError(
                f"Credentials file {path} not found and OANDA_ACCOUNT_ID/OANDA_API_KEY are not set."
            )
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise CredentialsError(f"{path} is not valid JSON: {e}") from e
        try:
            accounts = _ACCOUNTS.validate_python(raw)
        except ValidationError as e:
            raise CredentialsError(f"{path} has invalid account entries: {e}") from e
        if not accounts:
            raise CredentialsError(f"{path} does not define any account.")
        return cls(accounts)

    @classmethod
    def from_env(cls) -> "CredentialStore | None":
        account_id = os.getenv("OANDA_ACCOUNT_ID")
        token = os.getenv("OANDA_API_KEY")
        if not account_id or not token:
            return None
        return cls({"primary": Credential(id=account_id, token=token)})

    @property
    def aliases(self) -> list[str]:
        return sorted(self._accounts)

    def get(self, alias: str) -> Credential:
        try:
            return self._accounts[alias]
        except KeyError:
            raise CredentialsError(
                f"Unknown account alias '{alias}'. Known aliases: {', '.join(self.aliases)}"
            ) from None

    def __contains__(self, alias: object) -> bool:
        return alias in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)
