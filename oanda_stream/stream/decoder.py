"""
Incremental decoder for a body made of concatenated JSON values.

The pricing stream sends one object per tick with no framing beyond optional
newlines. Chunks from the transport can cut a value (or a UTF-8 sequence)
anywhere, so the decoder tracks bracket depth and string state across
`feed()` calls and hands each complete value to `json.loads`.
"""
from __future__ import annotations
import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator

from oanda_stream.errors import DecodeError, DecodeErrorKind

_WHITESPACE = " \t\r\n"


class JSONStreamDecoder:
    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._pending = ""      # text of the value currently being read
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._consumed = 0      # characters seen before the current chunk
        self._value_start = 0   # offset of the value in progress

    @property
    def has_partial(self) -> bool:
        return self._depth > 0

    @property
    def partial_offset(self) -> int:
        """Character offset where the unfinished value began."""
        return self._value_start

    def feed(self, data: bytes) -> list[Any]:
        try:
            text = self._utf8.decode(data)
        except UnicodeDecodeError as e:
            raise DecodeError(DecodeErrorKind.SYNTAX, f"invalid UTF-8: {e.reason}", self._consumed) from e
        values = self._scan(text)
        self._consumed += len(text)
        return values

    def close(self) -> None:
        """Signal end of input; raises if it arrived in the middle of a value."""
        try:
            self._utf8.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise DecodeError(DecodeErrorKind.TRUNCATED, "input ended inside a UTF-8 sequence", self._consumed) from e
        if self._depth > 0:
            raise DecodeError(DecodeErrorKind.TRUNCATED, "input ended inside a value", self._value_start)

    def _scan(self, text: str) -> list[Any]:
        values: list[Any] = []
        start = 0
        for i, ch in enumerate(text):
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
                continue

            if self._depth == 0:
                if ch in _WHITESPACE:
                    continue
                if ch not in "{[":
                    raise DecodeError(
                        DecodeErrorKind.SYNTAX,
                        f"unexpected {ch!r} between values",
                        self._consumed + i,
                    )
                start = i
                self._value_start = self._consumed + i

            if ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                self._depth -= 1
                if self._depth == 0:
                    values.append(self._load(self._pending + text[start:i + 1]))
                    self._pending = ""

        if self._depth > 0:
            self._pending += text[start:]
        return values

    def _load(self, doc: str) -> Any:
        try:
            return json.loads(doc, parse_constant=self._reject_constant)
        except json.JSONDecodeError as e:
            raise DecodeError(DecodeErrorKind.SYNTAX, e.msg, self._value_start + e.pos) from e

    def _reject_constant(self, name: str) -> Any:
        # json.loads accepts NaN and +/-Infinity, which are not JSON
        raise DecodeError(DecodeErrorKind.SYNTAX, f"{name} is not a JSON value", self._value_start)


async def iter_json(chunks: AsyncIterable[bytes], decoder: JSONStreamDecoder | None = None) -> AsyncIterator[Any]:
    """Yield decoded values from an async byte stream until it ends."""
    decoder = decoder or JSONStreamDecoder()
    async for chunk in chunks:
        for value in decoder.feed(chunk):
            yield value
    decoder.close()
