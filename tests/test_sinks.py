from dataclasses import replace

import pytest
from sqlalchemy import inspect, select

from oanda_stream.errors import PersistenceError
from oanda_stream.events import Heartbeat, Quote, UnknownRecord
from oanda_stream.settings import DatabaseSettings, Settings
from oanda_stream.storage import create_engine, ensure_tables, make_tables
from oanda_stream.stream.sinks import ConsoleSink, DatabaseSink, make_sink

QUOTE = Quote(
    instrument="EUR_USD",
    time="2024-01-01T00:00:01.000000000Z",
    bid_price="1.10450",
    bid_liquidity=1000000,
    ask_price="1.10462",
    ask_liquidity=2000000,
    closeout_bid="1.10440",
    closeout_ask="1.10472",
    tradeable=True,
    status="tradeable",
)
HEARTBEAT = Heartbeat(time="2024-01-01T00:00:05.000000000Z")


def _db_settings(tmp_path) -> DatabaseSettings:
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'ticks.db'}")


@pytest.mark.asyncio
async def test_console_sink_verbose(capsys):
    sink = ConsoleSink()
    await sink.write(QUOTE)
    await sink.write(HEARTBEAT)
    out = capsys.readouterr().out
    assert "Instrument: EUR_USD" in out
    assert "\tPrice: 1.10450" in out
    assert "Tradeable: True" in out
    assert "Type: HEARTBEAT, Time: 2024-01-01T00:00:05.000000000Z" in out


@pytest.mark.asyncio
async def test_console_sink_compact_single_line(capsys):
    sink = ConsoleSink(compact=True)
    await sink.write(QUOTE)
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    assert "EUR_USD" in lines[0] and "bid 1.10450" in lines[0] and "ask 1.10462" in lines[0]


@pytest.mark.asyncio
async def test_console_sink_ignores_unknown(capsys):
    await ConsoleSink().write(UnknownRecord(raw={"type": "X"}))
    assert capsys.readouterr().out == ""
    assert ConsoleSink.required is False


@pytest.mark.asyncio
async def test_database_sink_inserts_quote_and_heartbeat(tmp_path):
    engine = create_engine(_db_settings(tmp_path))
    tables = make_tables()
    try:
        await ensure_tables(engine, tables)
        sink = DatabaseSink(engine, tables)
        await sink.write(QUOTE)
        await sink.write(HEARTBEAT)
        async with engine.connect() as conn:
            ticks = (await conn.execute(select(tables.price_ticks))).mappings().all()
            beats = (await conn.execute(select(tables.heartbeats))).mappings().all()
    finally:
        await engine.dispose()

    assert len(tables.price_ticks.columns) == 11
    assert len(ticks) == 1
    row = ticks[0]
    assert row["instrument"] == "EUR_USD"
    assert row["bid_price"] == "1.10450"
    assert row["ask_liquidity"] == 2000000
    assert row["tradeable"] is True
    assert [dict(b) for b in beats] == [{"type": "HEARTBEAT", "time": HEARTBEAT.time}]


@pytest.mark.asyncio
async def test_database_sink_binds_hostile_strings(tmp_path):
    hostile = "EUR_USD'); DROP TABLE price_ticks; --"
    engine = create_engine(_db_settings(tmp_path))
    tables = make_tables()
    try:
        await ensure_tables(engine, tables)
        await DatabaseSink(engine, tables).write(
            replace(QUOTE, instrument=hostile, tradeable=False)
        )
        async with engine.connect() as conn:
            names = await conn.run_sync(lambda c: inspect(c).get_table_names())
            rows = (await conn.execute(select(tables.price_ticks))).mappings().all()
    finally:
        await engine.dispose()

    assert "price_ticks" in names
    assert rows[0]["instrument"] == hostile
    assert rows[0]["tradeable"] is False


@pytest.mark.asyncio
async def test_database_sink_wraps_insert_failure(tmp_path):
    engine = create_engine(_db_settings(tmp_path))
    try:
        sink = DatabaseSink(engine)  # tables never created
        with pytest.raises(PersistenceError, match="price_ticks"):
            await sink.write(QUOTE)
    finally:
        await engine.dispose()


def test_make_sink_picks_variant(tmp_path):
    settings = Settings()
    assert isinstance(make_sink(settings), ConsoleSink)

    settings.stream.sink = "database"
    settings.stream.persistence_required = False
    settings.database.price_table = "live"
    with pytest.raises(ValueError):
        make_sink(settings)

    engine = create_engine(_db_settings(tmp_path))
    sink = make_sink(settings, engine)
    assert isinstance(sink, DatabaseSink)
    assert sink.required is False
    assert sink.tables.price_ticks.name == "live"
