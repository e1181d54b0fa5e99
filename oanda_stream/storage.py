"""
Relational store for streamed ticks.

Two tables mirror the pricing stream: `price_ticks` (one row per quote, 11
columns) and `heartbeats` (type, time). `tradeable` is a SQLAlchemy Boolean,
which SQLAlchemy renders as BOOLEAN on PostgreSQL, BIT on SQL Server and a
0/1 INTEGER on SQLite.
"""
from __future__ import annotations
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import BigInteger, Boolean, Column, MetaData, String, Table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from oanda_stream.errors import PersistenceError
from oanda_stream.settings import DatabaseSettings


@dataclass
class StreamTables:
    metadata: MetaData
    price_ticks: Table
    heartbeats: Table


def make_tables(
    price_table: str = "price_ticks",
    heartbeat_table: str = "heartbeats",
    schema: str | None = None,
) -> StreamTables:
    metadata = MetaData(schema=schema)
    price_ticks = Table(
        price_table,
        metadata,
        Column("type", String(16), nullable=False),
        Column("time", String(40), nullable=False),
        Column("bid_price", String(32)),
        Column("bid_liquidity", BigInteger),
        Column("ask_price", String(32)),
        Column("ask_liquidity", BigInteger),
        Column("closeout_bid", String(32)),
        Column("closeout_ask", String(32)),
        Column("status", String(32)),
        Column("tradeable", Boolean(create_constraint=False)),
        Column("instrument", String(32), nullable=False),
    )
    heartbeats = Table(
        heartbeat_table,
        metadata,
        Column("type", String(16), nullable=False),
        Column("time", String(40), nullable=False),
    )
    return StreamTables(metadata=metadata, price_ticks=price_ticks, heartbeats=heartbeats)


def tables_from_settings(cfg: DatabaseSettings) -> StreamTables:
    return make_tables(cfg.price_table, cfg.heartbeat_table, cfg.schema_name)


def create_engine(cfg: DatabaseSettings) -> AsyncEngine:
    """Build the pooled engine shared by every stream driver of a process."""
    kwargs: dict = {"echo": cfg.echo}
    if not cfg.url.startswith("sqlite"):
        kwargs["pool_size"] = cfg.pool_size
        kwargs["pool_pre_ping"] = True
    try:
        engine = create_async_engine(cfg.url, **kwargs)
    except (SQLAlchemyError, ImportError) as e:
        raise PersistenceError(f"Could not create database engine: {e}") from e
    logger.info("Database engine created for {}", cfg.url.split("@")[-1])
    return engine


async def ensure_tables(engine: AsyncEngine, tables: StreamTables) -> None:
    """CREATE TABLE IF NOT EXISTS for the two tick tables."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(tables.metadata.create_all)
    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not create tick tables: {e}") from e
