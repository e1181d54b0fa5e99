from __future__ import annotations
import sys
from typing import Any, Protocol, TextIO

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from oanda_stream.errors import PersistenceError
from oanda_stream.events import Heartbeat, Quote, StreamRecord
from oanda_stream.settings import Settings
from oanda_stream.storage import StreamTables, make_tables, tables_from_settings


class Sink(Protocol):
    # When True, a failed write ends the stream.
    required: bool

    async def write(self, record: StreamRecord) -> None:
        ...


def format_quote(q: Quote) -> str:
    return "\n".join([
        f"Type: {q.type}",
        f"Time: {q.time}",
        "Bids:",
        f"\tPrice: {q.bid_price}",
        f"\tLiquidity: {q.bid_liquidity}",
        "Asks:",
        f"\tPrice: {q.ask_price}",
        f"\tLiquidity: {q.ask_liquidity}",
        f"Close Out Bid: {q.closeout_bid}",
        f"Close Out Ask: {q.closeout_ask}",
        f"Status: {q.status}",
        f"Tradeable: {q.tradeable}",
        f"Instrument: {q.instrument}",
    ])


def format_quote_line(q: Quote) -> str:
    flag = "T" if q.tradeable else "-"
    return (
        f"{q.time} {q.instrument:<8} "
        f"bid {q.bid_price} ({q.bid_liquidity}) ask {q.ask_price} ({q.ask_liquidity}) {flag}"
    )


def format_heartbeat(hb: Heartbeat) -> str:
    return f"Type: {hb.type}, Time: {hb.time}"


class ConsoleSink:
    required = False

    def __init__(self, compact: bool = False, out: TextIO | None = None):
        self.compact = compact
        self.out = out

    async def write(self, record: StreamRecord) -> None:
        if isinstance(record, Quote):
            text = format_quote_line(record) if self.compact else format_quote(record)
        elif isinstance(record, Heartbeat):
            text = format_heartbeat(record)
        else:
            return
        print(text, file=self.out or sys.stdout, flush=True)


def quote_row(q: Quote) -> dict[str, Any]:
    return {
        "type": q.type,
        "time": q.time,
        "bid_price": q.bid_price,
        "bid_liquidity": q.bid_liquidity,
        "ask_price": q.ask_price,
        "ask_liquidity": q.ask_liquidity,
        "closeout_bid": q.closeout_bid,
        "closeout_ask": q.closeout_ask,
        "status": q.status,
        "tradeable": q.tradeable,
        "instrument": q.instrument,
    }


def heartbeat_row(hb: Heartbeat) -> dict[str, Any]:
    return {"type": hb.type, "time": hb.time}


class DatabaseSink:
    """One bound-parameter INSERT per quote or heartbeat."""

    def __init__(self, engine: AsyncEngine, tables: StreamTables | None = None, required: bool = True):
        self.engine = engine
        self.tables = tables or make_tables()
        self.required = required

    async def write(self, record: StreamRecord) -> None:
        if isinstance(record, Quote):
            stmt, row = self.tables.price_ticks.insert(), quote_row(record)
        elif isinstance(record, Heartbeat):
            stmt, row = self.tables.heartbeats.insert(), heartbeat_row(record)
            logger.debug("Heartbeat {}", record.time)
        else:
            return
        try:
            async with self.engine.begin() as conn:
                await conn.execute(stmt, row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Insert into {stmt.table.name} failed: {e}") from e


def make_sink(settings: Settings, engine: AsyncEngine | None = None) -> Sink:
    cfg = settings.stream
    if cfg.sink == "console":
        return ConsoleSink(compact=cfg.compact)
    if engine is None:
        raise ValueError("stream.sink is 'database' but no database engine was provided.")
    return DatabaseSink(engine, tables_from_settings(settings.database), required=cfg.persistence_required)
