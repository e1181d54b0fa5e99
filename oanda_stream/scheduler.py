from __future__ import annotations
import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from oanda_stream.credentials import CredentialStore
from oanda_stream.settings import Settings
from oanda_stream.storage import create_engine, ensure_tables, tables_from_settings
from oanda_stream.stream.driver import PricingStream, StreamOutcome
from oanda_stream.stream.sinks import make_sink
from oanda_stream.telemetry import Tracer


def build_streams(
    settings: Settings,
    store: CredentialStore,
    *,
    engine: AsyncEngine | None = None,
    tracer: Tracer | None = None,
) -> list[PricingStream]:
    """One driver per configured stream group, all sharing `engine`."""
    streams = []
    for group in settings.stream.groups:
        alias = group.account or settings.oanda.account
        streams.append(
            PricingStream.from_settings(
                settings,
                store.get(alias),
                group.instruments,
                make_sink(settings, engine),
                tracer=tracer,
                account_alias=alias,
            )
        )
    return streams


async def run_streams(
    settings: Settings,
    store: CredentialStore,
    *,
    engine: AsyncEngine | None = None,
    tracer: Tracer | None = None,
) -> list[StreamOutcome]:
    """
    Run every configured stream until each one closes.

    When the database sink is selected and no engine is passed in, one is
    created from `settings.database` and disposed of afterwards.
    """
    owns_engine = False
    if settings.stream.sink == "database" and engine is None:
        engine = create_engine(settings.database)
        owns_engine = True
    try:
        if engine is not None and settings.database.create_tables:
            await ensure_tables(engine, tables_from_settings(settings.database))

        streams = build_streams(settings, store, engine=engine, tracer=tracer)
        logger.info("Starting {} pricing stream(s) with {} sink", len(streams), settings.stream.sink)
        tasks = [asyncio.create_task(s.run()) for s in streams]
        try:
            return list(await asyncio.gather(*tasks))
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        if owns_engine:
            await engine.dispose()
