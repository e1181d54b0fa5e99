from __future__ import annotations
from enum import Enum


class OandaError(Exception):
    """Base class for every error raised by oanda_stream."""


class ProviderError(OandaError):
    """A REST request failed or returned a payload we could not parse."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialsError(OandaError):
    pass


class StreamConnectionError(OandaError, ConnectionError):
    """Non-2xx response or transport failure on the pricing stream."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeErrorKind(str, Enum):
    TRUNCATED = "truncated"
    SYNTAX = "syntax"


class DecodeError(OandaError):
    def __init__(self, kind: DecodeErrorKind, message: str, offset: int = 0):
        super().__init__(f"{kind.value} JSON at offset {offset}: {message}")
        self.kind = kind
        self.offset = offset


class PersistenceError(OandaError):
    pass


def oanda_error_message(payload: object, default: str) -> str:
    """Pull OANDA's `errorMessage` out of an error body, if there is one."""
    if isinstance(payload, dict):
        msg = payload.get("errorMessage")
        if isinstance(msg, str) and msg:
            return msg
    return default
