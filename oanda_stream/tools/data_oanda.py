from __future__ import annotations
from contextlib import nullcontext
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from oanda_stream.errors import ProviderError, oanda_error_message
from oanda_stream.tools.data_models import (
    AccountChanges,
    AccountDetails,
    AccountInstruments,
    AccountList,
    AccountSummary,
    CandleSeries,
)

PRACTICE_BASE = "https://api-fxpractice.oanda.com"

async def _get(
    url: str,
    token: str,
    params: dict | None = None,
    *,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> dict:
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept-Datetime-Format": "RFC3339",
        "Content-Type": "application/json",
    }
    client_cm = nullcontext(client) if client is not None else httpx.AsyncClient(timeout=timeout)
    try:
        async with client_cm as c:
            r = await c.get(url, headers=headers, params=params)
            if r.is_error:
                try:
                    body = r.json()
                except ValueError:
                    body = None
                msg = oanda_error_message(body, r.reason_phrase or "request failed")
                raise ProviderError(f"GET {url} returned {r.status_code}: {msg}", status_code=r.status_code)
            logger.debug("GET {} -> {}", url, r.status_code)
            return r.json()
    except httpx.TransportError as e:
        raise ProviderError(f"GET {url} failed: {type(e).__name__}: {e}") from e
    except ValueError as e:
        # body of a 2xx response that is not JSON
        raise ProviderError(f"GET {url} returned invalid JSON: {e}") from e


def _parse(model: type[BaseModel], data: Any, what: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProviderError(f"Unexpected {what} payload: {e}") from e


async def candles(
    instrument: str,
    granularity: str,
    token: str,
    *,
    base: str = PRACTICE_BASE,
    count: int | None = None,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> CandleSeries:
    """Historical bid/ask candles (price=BA) for one instrument."""
    url = f"{base}/v3/instruments/{instrument}/candles"
    params = {"granularity": granularity, "price": "BA"}
    if count is not None:
        params["count"] = str(count)
    data = await _get(url, token, params=params, timeout=timeout, client=client)
    return _parse(CandleSeries, data, "candles")


async def accounts(
    token: str,
    *,
    base: str = PRACTICE_BASE,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> AccountList:
    """Accounts the token is authorized for."""
    data = await _get(f"{base}/v3/accounts", token, timeout=timeout, client=client)
    return _parse(AccountList, data, "accounts")


async def account_summary(
    account_id: str,
    token: str,
    *,
    base: str = PRACTICE_BASE,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> AccountSummary:
    data = await _get(f"{base}/v3/accounts/{account_id}/summary", token, timeout=timeout, client=client)
    account = data.get("account") if isinstance(data, dict) else None
    return _parse(AccountSummary, account, "account summary")


async def account_details(
    account_id: str,
    token: str,
    *,
    base: str = PRACTICE_BASE,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> AccountDetails:
    """Full account details, including pending orders, open trades and open positions."""
    data = await _get(f"{base}/v3/accounts/{account_id}", token, timeout=timeout, client=client)
    account = data.get("account") if isinstance(data, dict) else None
    return _parse(AccountDetails, account, "account details")


async def account_instruments(
    account_id: str,
    token: str,
    *,
    base: str = PRACTICE_BASE,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> AccountInstruments:
    """Instruments tradeable by the account (depends on its regulatory division)."""
    data = await _get(f"{base}/v3/accounts/{account_id}/instruments", token, timeout=timeout, client=client)
    return _parse(AccountInstruments, data, "account instruments")


async def account_changes(
    account_id: str,
    since_transaction_id: str,
    token: str,
    *,
    base: str = PRACTICE_BASE,
    timeout: float = 10.0,
    client: httpx.AsyncClient | None = None,
) -> AccountChanges:
    """Changes to the account and its current state since `since_transaction_id`."""
    data = await _get(
        f"{base}/v3/accounts/{account_id}/changes",
        token,
        params={"sinceTransactionID": since_transaction_id},
        timeout=timeout,
        client=client,
    )
    return _parse(AccountChanges, data, "account changes")
