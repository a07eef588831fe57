"""
Stream processor service - Domain service for handling streaming responses.
Turns decoded Ollama chat records into delta events and one terminal result.
"""

from __future__ import annotations
import asyncio
import inspect
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, Callable, Deque, List, Mapping, Optional

from ..errors import BackendError, DecodeError, OllamaStreamError, StreamClosedError
from ..models.chat import ChatEvent, ChatResult, StreamStep, TextEvent, ThinkingEvent, ToolCallsEvent
from ..models.tool import ToolCall, canonicalize_tool_calls
from ..models.usage import TokenUsage, usage_from_chunk
from ...runtime.signal import AbortSignal


class StreamState(Enum):
    """States of a chat event stream."""
    AWAITING_CHUNK = "awaiting_chunk"
    EMITTING_QUEUED = "emitting_queued"
    TERMINAL = "terminal"


@dataclass
class StreamAccumulator:
    """Partial state of a turn while records are still arriving."""
    text: str = ""
    thinking: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Optional[TokenUsage] = None

    def to_result(self) -> ChatResult:
        return ChatResult(
            text=self.text,
            thinking=self.thinking or None,
            tool_calls=tuple(self.tool_calls) if self.tool_calls else None,
            usage=self.usage or TokenUsage(),
        )


class ChatEventStream:
    """Pull-based stream of chat events ending in a single ``ChatResult``.

    ``await stream.next()`` returns ``StreamStep(done=False, value=event)`` for
    each event and finally ``StreamStep(done=True, value=result)``. The stream
    is also an async iterator over events; ``stream.result`` is set once it
    has finished.
    """

    def __init__(
        self,
        records: AsyncIterable[Any],
        *,
        emit_text: bool = True,
        signal: Optional[AbortSignal] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._records = records.__aiter__()
        self._emit_text = emit_text
        self._signal = signal
        self._logger = logger or logging.getLogger(__name__)
        self._queue: Deque[ChatEvent] = deque()
        self._acc = StreamAccumulator()
        self._state = StreamState.AWAITING_CHUNK
        self._result: Optional[ChatResult] = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def result(self) -> Optional[ChatResult]:
        return self._result

    @property
    def accumulated(self) -> StreamAccumulator:
        return self._acc

    async def next(self) -> StreamStep:
        if self._state is StreamState.TERMINAL:
            raise StreamClosedError("Chat stream has already produced its result")

        while True:
            if self._queue:
                event = self._queue.popleft()
                self._state = StreamState.EMITTING_QUEUED if self._queue else StreamState.AWAITING_CHUNK
                return StreamStep(done=False, value=event)

            if self._signal is not None and self._signal.aborted:
                raise asyncio.CancelledError()

            try:
                record = await self._records.__anext__()
            except StopAsyncIteration:
                self._state = StreamState.TERMINAL
                self._result = self._acc.to_result()
                self._logger.debug(
                    f"Stream finalized - Content: {len(self._result.text)} chars, "
                    f"Tool calls: {len(self._result.tool_calls or ())}"
                )
                return StreamStep(done=True, value=self._result)
            except OllamaStreamError:
                self._state = StreamState.TERMINAL
                raise

            try:
                self._apply(record)
            except OllamaStreamError:
                self._state = StreamState.TERMINAL
                raise

    def _apply(self, record: Any) -> None:
        """Fold one record into the accumulator and queue its deltas."""
        if not isinstance(record, Mapping):
            raise DecodeError(json.dumps(record), TypeError("record is not a JSON object"))

        if record.get("error"):
            raise BackendError(str(record["error"]), body=json.dumps(record))

        if record.get("done"):
            self._acc.usage = usage_from_chunk(record)

        message = record.get("message") or {}

        content = message.get("content")
        if content:
            self._acc.text += content
            if self._emit_text:
                self._queue.append(TextEvent(content))

        thinking = message.get("thinking")
        if thinking:
            self._acc.thinking += thinking
            self._queue.append(ThinkingEvent(thinking))

        calls = canonicalize_tool_calls(message.get("tool_calls"))
        if calls:
            self._acc.tool_calls.extend(calls)
            self._queue.append(ToolCallsEvent(tuple(calls)))
            self._logger.debug(f"Record carried {len(calls)} tool call(s)")

    def __aiter__(self) -> ChatEventStream:
        return self

    async def __anext__(self) -> ChatEvent:
        if self._state is StreamState.TERMINAL:
            raise StopAsyncIteration
        step = await self.next()
        if step.done:
            raise StopAsyncIteration
        return step.value


async def consume_stream(
    stream: ChatEventStream,
    handler: Optional[Callable[[ChatEvent], Any]] = None
) -> ChatResult:
    """Drive ``stream`` to completion, passing each event to ``handler``."""
    while True:
        step = await stream.next()
        if step.done:
            return step.value
        if handler is not None:
            outcome = handler(step.value)
            if inspect.isawaitable(outcome):
                await outcome
