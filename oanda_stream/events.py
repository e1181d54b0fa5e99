from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Union

import pandas as pd


def _decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


@dataclass(frozen=True)
class Quote:
    instrument: str
    time: str
    bid_price: str | None
    bid_liquidity: int | None
    ask_price: str | None
    ask_liquidity: int | None
    closeout_bid: str | None
    closeout_ask: str | None
    tradeable: bool
    status: str = ""
    type: str = "PRICE"

    def timestamp(self) -> pd.Timestamp:
        return pd.Timestamp(self.time)

    @property
    def bid(self) -> Decimal | None:
        return _decimal(self.bid_price)

    @property
    def ask(self) -> Decimal | None:
        return _decimal(self.ask_price)

    def as_payload(self) -> dict[str, Any]:
        """Re-encode in the shape the pricing stream sends."""
        payload: dict[str, Any] = {
            "type": self.type,
            "time": self.time,
            "instrument": self.instrument,
            "bids": [],
            "asks": [],
            "closeoutBid": self.closeout_bid,
            "closeoutAsk": self.closeout_ask,
            "status": self.status,
            "tradeable": self.tradeable,
        }
        if self.bid_price is not None:
            payload["bids"].append({"price": self.bid_price, "liquidity": self.bid_liquidity})
        if self.ask_price is not None:
            payload["asks"].append({"price": self.ask_price, "liquidity": self.ask_liquidity})
        return payload


@dataclass(frozen=True)
class Heartbeat:
    time: str
    type: str = "HEARTBEAT"

    def timestamp(self) -> pd.Timestamp:
        return pd.Timestamp(self.time)


@dataclass(frozen=True)
class UnknownRecord:
    raw: Any
    kind: Any = None
    reason: str = ""


StreamRecord = Union[Quote, Heartbeat, UnknownRecord]
