"""
Pricing stream driver.

One `PricingStream` owns one HTTP connection to
`/v3/accounts/{id}/pricing/stream` and moves through

    CONNECTING -> STREAMING -> CLOSED_CLEAN | CLOSED_FAILED

Every decoded value is classified and handed to the sink before the next one
is pulled, so a slow sink slows the reads down instead of queueing ticks in
memory. Fatal conditions end the run and are returned in a `StreamOutcome`;
nothing here retries, reconnects or exits the process.
"""
from __future__ import annotations
import asyncio
import time
import uuid
from contextlib import nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Sequence

import httpx
from loguru import logger

from oanda_stream.credentials import Credential
from oanda_stream.errors import (
    DecodeError,
    DecodeErrorKind,
    OandaError,
    PersistenceError,
    StreamConnectionError,
    oanda_error_message,
)
from oanda_stream.events import Heartbeat, Quote, UnknownRecord
from oanda_stream.settings import Settings
from oanda_stream.stream.classifier import classify
from oanda_stream.stream.decoder import JSONStreamDecoder, iter_json
from oanda_stream.stream.sinks import Sink
from oanda_stream.telemetry import Tracer

_END = object()


class StreamState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED_CLEAN = "closed_clean"
    CLOSED_FAILED = "closed_failed"


@dataclass
class StreamOutcome:
    state: StreamState = StreamState.CONNECTING
    error: OandaError | None = None
    status_code: int | None = None
    quotes: int = 0
    heartbeats: int = 0
    dropped: int = 0
    stopped: bool = False

    @property
    def ok(self) -> bool:
        return self.state is StreamState.CLOSED_CLEAN

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class PricingStream:
    def __init__(
        self,
        credential: Credential,
        instruments: Sequence[str],
        sink: Sink,
        *,
        stream_base: str = "https://stream-fxpractice.oanda.com",
        snapshot: bool = True,
        include_home_conversions: bool = False,
        timeout: httpx.Timeout | None = None,
        client: httpx.AsyncClient | None = None,
        tracer: Tracer | None = None,
        account_alias: str | None = None,
    ) -> None:
        if not instruments:
            raise ValueError("instruments must not be empty")
        self.credential = credential
        self.instruments = list(instruments)
        self.sink = sink
        self.stream_base = stream_base.rstrip("/")
        self.snapshot = snapshot
        self.include_home_conversions = include_home_conversions
        # no overall deadline: the body never ends, only reads may stall
        self.timeout = timeout or httpx.Timeout(10.0, read=30.0)
        self.tracer = tracer
        self.account_alias = account_alias
        self.state = StreamState.CONNECTING
        self._client = client
        self._stopped = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credential: Credential,
        instruments: Sequence[str],
        sink: Sink,
        **kwargs: Any,
    ) -> "PricingStream":
        cfg = settings.stream
        kwargs.setdefault("timeout", httpx.Timeout(settings.oanda.timeout, read=cfg.read_timeout))
        return cls(
            credential,
            instruments,
            sink,
            stream_base=settings.oanda.stream_base,
            snapshot=cfg.snapshot,
            include_home_conversions=cfg.include_home_conversions,
            **kwargs,
        )

    @property
    def url(self) -> str:
        return f"{self.stream_base}/v3/accounts/{self.credential.id}/pricing/stream"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credential.token}",
            "Accept-Datetime-Format": "RFC3339",
            "Connection": "Keep-Alive",
            "Content-Type": "application/octet-stream",
        }

    def params(self) -> dict[str, str]:
        return {
            "instruments": ",".join(self.instruments),
            "snapshot": str(self.snapshot),
            "includeHomeConversions": str(self.include_home_conversions),
        }

    def stop(self) -> None:
        """Ask a running stream to close cleanly after the current record."""
        self._stopped.set()

    async def run(self) -> StreamOutcome:
        outcome = StreamOutcome()
        session_id = uuid.uuid4().hex
        started = time.monotonic()
        self.state = StreamState.CONNECTING
        self._trace("stream_open", session_id, outcome)

        client_cm = nullcontext(self._client) if self._client is not None else httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client_cm as client:
                async with client.stream("GET", self.url, headers=self.headers(), params=self.params()) as response:
                    if not response.is_success:
                        raise StreamConnectionError(
                            await self._error_message(response), status_code=response.status_code
                        )
                    logger.info("Pricing stream open for {} ({})", ",".join(self.instruments), self.credential.id)
                    self.state = StreamState.STREAMING
                    await self._consume(response, outcome)
            outcome.state = StreamState.CLOSED_CLEAN
        except httpx.TransportError as e:
            where = "while streaming" if self.state is StreamState.STREAMING else "while connecting"
            self._fail(outcome, StreamConnectionError(f"Transport failed {where}: {type(e).__name__}: {e}"))
        except OandaError as e:
            self._fail(outcome, e)
        except asyncio.CancelledError:
            outcome.state = StreamState.CLOSED_CLEAN
            outcome.stopped = True
            raise
        except Exception:
            outcome.state = StreamState.CLOSED_FAILED
            raise
        finally:
            self.state = outcome.state
            logger.info(
                "Pricing stream closed: {} (quotes={}, heartbeats={}, dropped={})",
                outcome.state.value, outcome.quotes, outcome.heartbeats, outcome.dropped,
            )
            self._trace("stream_closed", session_id, outcome, duration_ms=round((time.monotonic() - started) * 1000))
        return outcome

    async def _consume(self, response: httpx.Response, outcome: StreamOutcome) -> None:
        decoder = JSONStreamDecoder()
        records = iter_json(response.aiter_bytes(), decoder)
        try:
            while True:
                value = await self._next_value(records)
                if value is _END:
                    outcome.stopped = self._stopped.is_set()
                    return
                record = classify(value)
                if isinstance(record, UnknownRecord):
                    outcome.dropped += 1
                    logger.debug("Dropping stream record ({}): {!r}", record.reason, record.raw)
                    continue
                try:
                    await self.sink.write(record)
                except PersistenceError as e:
                    if self.sink.required:
                        raise
                    logger.warning("Sink write failed, continuing: {}", e)
                    continue
                if isinstance(record, Quote):
                    outcome.quotes += 1
                elif isinstance(record, Heartbeat):
                    outcome.heartbeats += 1
        except httpx.TransportError as e:
            if not decoder.has_partial:
                raise
            # connection dropped in the middle of a value
            raise DecodeError(
                DecodeErrorKind.TRUNCATED,
                f"input ended inside a value ({type(e).__name__}: {e})",
                decoder.partial_offset,
            ) from e
        finally:
            await records.aclose()

    async def _next_value(self, records: AsyncIterator[Any]) -> Any:
        """Next decoded value, or _END on end of body or stop()."""
        if self._stopped.is_set():
            return _END
        pull = asyncio.ensure_future(_pull(records))
        stop = asyncio.ensure_future(self._stopped.wait())
        try:
            await asyncio.wait({pull, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (pull, stop):
                if not task.done():
                    task.cancel()
            # a cancelled pull must finish unwinding the generator before it is closed
            await asyncio.gather(pull, stop, return_exceptions=True)
        if not pull.cancelled():
            return pull.result()
        return _END

    @staticmethod
    async def _error_message(response: httpx.Response) -> str:
        await response.aread()
        default = f"Pricing stream returned HTTP {response.status_code}"
        try:
            return oanda_error_message(response.json(), default)
        except ValueError:
            return default

    def _fail(self, outcome: StreamOutcome, error: OandaError) -> None:
        outcome.state = StreamState.CLOSED_FAILED
        outcome.error = error
        outcome.status_code = getattr(error, "status_code", None)
        if isinstance(error, DecodeError):
            logger.error("Pricing stream decode failure ({}): {}", error.kind.value, error)
        else:
            logger.error("Pricing stream failed: {}", error)

    def _trace(self, event_type: str, session_id: str, outcome: StreamOutcome, **extra: Any) -> None:
        if self.tracer is None:
            return
        error = outcome.error
        self.tracer.log({
            "event_type": event_type,
            "session_id": session_id,
            "account": self.account_alias or self.credential.id,
            "instruments": self.instruments,
            "sink": type(self.sink).__name__,
            "state": outcome.state.value,
            "status_code": outcome.status_code,
            "error_type": type(error).__name__ if error else None,
            "error_message": str(error) if error else None,
            "quotes": outcome.quotes,
            "heartbeats": outcome.heartbeats,
            "dropped": outcome.dropped,
            **extra,
        })


async def _pull(records: AsyncIterator[Any]) -> Any:
    try:
        return await records.__anext__()
    except StopAsyncIteration:
        return _END
