from __future__ import annotations
import asyncio
import sys
from pathlib import Path

from sqlalchemy import text

from oanda_stream.credentials import CredentialStore
from oanda_stream.errors import OandaError
from oanda_stream.settings import ROOT, Settings, load_settings
from oanda_stream.storage import create_engine
from oanda_stream.tools import data_oanda


def check_credentials(settings: Settings) -> tuple[CredentialStore | None, int]:
    path = ROOT / settings.oanda.credentials_path
    print(f"2. Checking credentials ({path}) ...")
    try:
        store = CredentialStore.load(path)
        store.get(settings.oanda.account)
        print(f"   ✅ Loaded {len(store)} account(s): {', '.join(store.aliases)}")
        return store, 0
    except OandaError as e:
        print(f"   ❌ FAILED: {e}")
        return None, 1


async def check_oanda(settings: Settings, store: CredentialStore | None) -> int:
    print(f"3. Checking OANDA REST API at {settings.oanda.base} ...")
    if store is None:
        print("   ⚪️ SKIPPED: no credentials.")
        return 0
    cred = store.get(settings.oanda.account)
    try:
        summary = await data_oanda.account_summary(
            cred.id, cred.token, base=settings.oanda.base, timeout=settings.oanda.timeout
        )
    except OandaError as e:
        print(f"   ❌ FAILED: {e}")
        return 1
    print(f"   ✅ OANDA connection successful. Account: {summary.alias or 'N/A'}, Currency: {summary.currency}")
    return 0


async def check_database(settings: Settings) -> int:
    print("4. Checking database ...")
    if settings.stream.sink != "database":
        print("   ⚪️ SKIPPED: stream.sink is not 'database'.")
        return 0
    try:
        engine = create_engine(settings.database)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        finally:
            await engine.dispose()
    except Exception as e:
        print(f"   ❌ FAILED: Could not reach the database: {type(e).__name__}: {e}")
        return 1
    print(f"   ✅ Database is reachable: {settings.database.url.split('@')[-1]}")
    return 0


async def run_diagnostics(config: Path | None = None) -> int:
    """
    Runs a series of checks to diagnose common configuration and connectivity issues.
    Returns the number of failed checks.
    """
    print("1. Loading settings ...")
    try:
        settings = load_settings(config)
    except Exception as e:
        print(f"   ❌ FAILED: {type(e).__name__}: {e}")
        return 1
    print(f"   ✅ OANDA env: {settings.oanda.env}, sink: {settings.stream.sink}")

    store, failures = check_credentials(settings)
    failures += await check_oanda(settings, store)
    failures += await check_database(settings)
    return failures


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(run_diagnostics()) else 0)
