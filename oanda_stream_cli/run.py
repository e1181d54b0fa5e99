import asyncio
import argparse
import sys
from pathlib import Path

from oanda_stream.credentials import CredentialStore
from oanda_stream.errors import OandaError
from oanda_stream.log import configure_logging
from oanda_stream.settings import ROOT, StreamGroup, load_settings
from oanda_stream.telemetry import Tracer
from oanda_stream.tools import data_oanda
from oanda_stream.tools.data_models import CandleSeries


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="OANDA candles and live pricing stream")
    parser.add_argument("--config", type=Path, default=None, help="settings.yaml to use")
    parser.add_argument("--account", default=None, help="Account alias from the credentials file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_candles = sub.add_parser("candles", help="Fetch historical bid/ask candles")
    p_candles.add_argument("instrument")
    p_candles.add_argument("--granularity", default="S5")
    p_candles.add_argument("--count", type=int, default=None)

    p_stream = sub.add_parser("stream", help="Consume the live pricing stream")
    p_stream.add_argument("--instruments", default=None, help="Comma-separated, e.g. EUR_USD,USD_CAD")
    p_stream.add_argument("--sink", choices=["console", "database"], default=None)

    sub.add_parser("accounts", help="List accounts the token is authorized for")
    return parser


def print_candles(series: CandleSeries) -> None:
    print(f"Instrument: \t\t{series.instrument}")
    print(f"Granularity: \t\t{series.granularity}")
    print(f"Candles - Count: \t{len(series.candles)}")
    last = series.most_recent
    if last is None:
        return
    print(f"Candles - Complete: \t{last.complete}")
    print(f"Candles - Volume: \t{last.volume}")
    print(f"Candles - Time: \t{last.time}")
    for side, prices in (("Bid", last.bid), ("Ask", last.ask)):
        if prices is None:
            continue
        print(f"\t- {side}:")
        print(f"\t\tOpen: \t{prices.o}")
        print(f"\t\tHigh: \t{prices.h}")
        print(f"\t\tLow: \t{prices.l}")
        print(f"\t\tClose: \t{prices.c}")


async def _run(args, settings, store) -> int:
    alias = args.account or settings.oanda.account
    credential = store.get(alias)

    if args.command == "candles":
        series = await data_oanda.candles(
            args.instrument, args.granularity, credential.token,
            base=settings.oanda.base, count=args.count, timeout=settings.oanda.timeout,
        )
        print_candles(series)
        return 0

    if args.command == "accounts":
        listing = await data_oanda.accounts(credential.token, base=settings.oanda.base, timeout=settings.oanda.timeout)
        for acc in listing.accounts:
            print(f"{acc.id}\t{','.join(acc.tags)}")
        return 0

    # stream
    from oanda_stream.scheduler import run_streams
    if args.sink:
        settings.stream.sink = args.sink
    if args.instruments:
        instruments = [i.strip() for i in args.instruments.split(",") if i.strip()]
        settings.stream.groups = [StreamGroup(account=alias, instruments=instruments)]
    elif args.account:
        for group in settings.stream.groups:
            group.account = alias
    outcomes = await run_streams(settings, store, tracer=Tracer(settings.telemetry))
    failed = [o for o in outcomes if not o.ok]
    for o in failed:
        print(f"[ERROR] stream closed with {type(o.error).__name__}: {o.error}", file=sys.stderr)
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except Exception as e:
        print(f"[config] Failed to load settings: {type(e).__name__}: {e}", file=sys.stderr, flush=True)
        return 1
    configure_logging(settings.logging)

    try:
        store = CredentialStore.load(ROOT / settings.oanda.credentials_path)
        return asyncio.run(_run(args, settings, store))
    except OandaError as e:
        print(f"\n[ERROR] {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nExiting...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
