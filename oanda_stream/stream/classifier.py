from __future__ import annotations
import math
from typing import Any

from oanda_stream.events import Heartbeat, Quote, StreamRecord, UnknownRecord

PRICE = "PRICE"
HEARTBEAT = "HEARTBEAT"


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    # bool is an int subclass, and True is not a price
    if isinstance(value, bool):
        return None
    if isinstance(value, int) or (isinstance(value, float) and math.isfinite(value)):
        return str(value)
    return None


def _int(value: Any) -> int | None:
    """Whole-number liquidity; anything that would lose information is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # is_integer() is False for inf and nan
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _top_of_book(levels: Any) -> tuple[str | None, int | None]:
    """Price and liquidity of the first bucket of a bids/asks list."""
    if not isinstance(levels, list) or not levels or not isinstance(levels[0], dict):
        return None, None
    best = levels[0]
    return _text(best.get("price")), _int(best.get("liquidity"))


def classify(value: Any) -> StreamRecord:
    """
    Turn one decoded stream value into a Quote, a Heartbeat or an UnknownRecord.

    Never raises: only `type` and `instrument` decide the category, every other
    field is read leniently.
    """
    if not isinstance(value, dict):
        return UnknownRecord(raw=value, reason="not a JSON object")

    kind = value.get("type")
    if kind == HEARTBEAT:
        return Heartbeat(time=_text(value.get("time")) or "")

    instrument = value.get("instrument")
    if kind == PRICE and isinstance(instrument, str) and instrument:
        bid_price, bid_liquidity = _top_of_book(value.get("bids"))
        ask_price, ask_liquidity = _top_of_book(value.get("asks"))
        status = value.get("status")
        return Quote(
            instrument=instrument,
            time=_text(value.get("time")) or "",
            bid_price=bid_price,
            bid_liquidity=bid_liquidity,
            ask_price=ask_price,
            ask_liquidity=ask_liquidity,
            closeout_bid=_text(value.get("closeoutBid")),
            closeout_ask=_text(value.get("closeoutAsk")),
            tradeable=value.get("tradeable") is True,
            status=status if isinstance(status, str) else "",
        )

    if kind == PRICE:
        return UnknownRecord(raw=value, kind=kind, reason="price without instrument")
    return UnknownRecord(raw=value, kind=kind, reason="unrecognised type")
