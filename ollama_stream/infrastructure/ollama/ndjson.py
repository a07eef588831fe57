"""
NDJSON decoder - turns a byte stream into parsed JSON records.

Lines may be split anywhere across reads, including inside a multi-byte
UTF-8 sequence. A trailing record without a final newline is still yielded.
"""

from __future__ import annotations
import asyncio
import codecs
import inspect
import json
import logging
from typing import Any, AsyncIterable, Callable, Optional, Union, TYPE_CHECKING

from ...domain.errors import DecodeError
from ...runtime.signal import AbortSignal

if TYPE_CHECKING:
    from ...runtime.scope import Scope

ByteSource = AsyncIterable[Union[bytes, str]]


class NDJSONDecoder:
    """Async iterator of records parsed from newline-delimited JSON."""

    def __init__(
        self,
        source: ByteSource,
        *,
        signal: Optional[AbortSignal] = None,
        release: Optional[Callable[[], Any]] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._source = source
        self._iterator = source.__aiter__()
        self._signal = signal
        self._release = release
        self._logger = logger or logging.getLogger(__name__)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._exhausted = False
        self._closed = False
        self.records_read = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> NDJSONDecoder:
        return self

    async def __anext__(self) -> Any:
        while True:
            if self._signal is not None and self._signal.aborted:
                raise asyncio.CancelledError()

            newline = self._buffer.find("\n")
            if newline >= 0:
                line = self._buffer[:newline].strip()
                self._buffer = self._buffer[newline + 1:]
                if line:
                    return self._parse(line)
                continue

            if self._exhausted:
                tail = self._buffer.strip()
                self._buffer = ""
                if tail:
                    return self._parse(tail)
                raise StopAsyncIteration

            try:
                chunk = await self._iterator.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                self._buffer += self._decoder.decode(b"", final=True)
                continue

            if isinstance(chunk, str):
                self._buffer += chunk
            else:
                self._buffer += self._decoder.decode(chunk)

    def _parse(self, line: str) -> Any:
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise DecodeError(line, e) from e
        self.records_read += 1
        return record

    async def aclose(self) -> None:
        """Release the underlying source. Only the first call has any effect."""
        if self._closed:
            return
        self._closed = True
        self._logger.debug(f"Closing NDJSON source after {self.records_read} records")

        close = getattr(self._source, "aclose", None)
        if close is None and self._iterator is not self._source:
            close = getattr(self._iterator, "aclose", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result

        if self._release is not None:
            result = self._release()
            if inspect.isawaitable(result):
                await result


def open_ndjson(
    scope: "Scope",
    source: ByteSource,
    *,
    release: Optional[Callable[[], Any]] = None
) -> NDJSONDecoder:
    """Decoder bound to ``scope``: aborted with it and closed when it exits."""
    decoder = NDJSONDecoder(source, signal=scope.signal, release=release)
    scope.ensure(decoder.aclose)
    return decoder
