"""
Chat service - Application service orchestrating complete chat interactions.
Coordinates streaming, the status spinner, tool rounds and usage accounting.
"""

from __future__ import annotations
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx

from ..domain.errors import BackendError, DecodeError
from ..domain.interfaces.llm_client import ChatBackend, StatusSink
from ..domain.interfaces.tool_plugin import ParameterSchema, ToolRegistry
from ..domain.models.chat import (
    ChatEvent, ChatResult, ParseError, StructuredResult, TextEvent, ThinkingEvent, ToolCallsEvent,
)
from ..domain.models.conversation import Message, MessageRole
from ..domain.models.result import Result, err
from ..domain.models.tool import ToolCall
from ..domain.models.usage import UsageState, record_usage
from ..domain.services.stream_processor import consume_stream
from ..domain.services.structured_output import parse_structured
from ..domain.services.tool_orchestrator import ToolOrchestrator, ToolOutcome
from ..infrastructure.tools.registry import DefaultToolRegistry
from ..runtime.scope import Scope, run_scoped
from ..runtime.signal import AbortSignal
from ..runtime.spinner import DEFAULT_INTERVAL, use_spinner

MaybeAwaitable = Union[Awaitable[None], None]

# Failures after which a whole turn may be re-sent
TURN_RETRYABLE_ERRORS = (BackendError, DecodeError, httpx.HTTPError)


@dataclass
class TurnCallbacks:
    """Optional hooks fired while a turn is in flight (sync or async)."""
    on_text: Optional[Callable[[str], MaybeAwaitable]] = None
    on_thinking: Optional[Callable[[str], MaybeAwaitable]] = None
    on_tool_calls: Optional[Callable[[Sequence[ToolCall]], MaybeAwaitable]] = None
    on_tool_results: Optional[Callable[[Sequence[ToolCall], Sequence[ToolOutcome]], MaybeAwaitable]] = None
    on_usage: Optional[Callable[[UsageState], MaybeAwaitable]] = None


@dataclass
class TurnOutcome:
    """Everything one user turn produced."""
    messages: List[Message]
    result: Optional[ChatResult]
    iterations: int
    tool_outcomes: List[ToolOutcome] = field(default_factory=list)
    limit_hit: bool = False

    @property
    def text(self) -> str:
        return self.result.text if self.result else ""


async def _call_maybe_async(fn: Optional[Callable], *args) -> Any:
    if fn is None:
        return None
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


class ChatService:
    """Application service running the stream -> tools -> stream loop."""

    def __init__(
        self,
        backend: ChatBackend,
        registry: Optional[ToolRegistry] = None,
        *,
        usage: Optional[UsageState] = None,
        max_tool_iterations: int = 10,
        sink: Optional[StatusSink] = None,
        spinner_interval: float = DEFAULT_INTERVAL,
        logger: Optional[logging.Logger] = None
    ):
        self._backend = backend
        self._registry = registry
        self._orchestrator = ToolOrchestrator(registry or DefaultToolRegistry(), logger=logger)
        self._usage = usage or UsageState()
        self._max_tool_iterations = max(1, max_tool_iterations)
        self._sink = sink
        self._spinner_interval = spinner_interval
        self._logger = logger or logging.getLogger(__name__)

    @property
    def usage(self) -> UsageState:
        return self._usage

    def reset_usage(self) -> UsageState:
        self._usage = UsageState.initial(self._usage.context_limit)
        return self._usage

    async def run_turn(
        self,
        history: Sequence[Message],
        *,
        callbacks: Optional[TurnCallbacks] = None,
        signal: Optional[AbortSignal] = None
    ) -> Optional[TurnOutcome]:
        """Stream a reply, running requested tools until the model answers.

        ``history`` is never modified; the messages to append are returned in
        ``TurnOutcome.messages``. Returns ``None`` if ``signal`` aborted the turn.
        """
        return await self._run_loop(history, callbacks or TurnCallbacks(), signal)

    async def structured_chat(
        self,
        history: Sequence[Message],
        schema: ParameterSchema,
        *,
        callbacks: Optional[TurnCallbacks] = None,
        signal: Optional[AbortSignal] = None
    ) -> Optional[Result[StructuredResult[Any], ParseError]]:
        """Ask for output constrained to ``schema`` and parse the final text."""
        outcome = await self._run_loop(
            history,
            callbacks or TurnCallbacks(),
            signal,
            format=schema.describe(),
            emit_text=False,
        )
        if outcome is None:
            return None
        if outcome.limit_hit or outcome.result is None:
            return err(ParseError(
                phase="json",
                message=f"Max iterations ({self._max_tool_iterations}) reached",
                raw="",
            ))
        return parse_structured(outcome.result, schema)

    async def _run_loop(
        self,
        history: Sequence[Message],
        cb: TurnCallbacks,
        signal: Optional[AbortSignal],
        format: Optional[Dict[str, Any]] = None,
        emit_text: bool = True
    ) -> Optional[TurnOutcome]:
        working = list(history)
        new_messages: List[Message] = []
        tool_outcomes: List[ToolOutcome] = []
        result: Optional[ChatResult] = None

        for iteration in range(1, self._max_tool_iterations + 1):
            self._logger.debug(f"Chat iteration {iteration} - {len(working)} messages")

            result = await run_scoped(
                lambda scope: self._stream_once(scope, working, cb, format, emit_text),
                name="chat-stream",
                link=signal,
                logger=self._logger,
            )
            if result is None:
                self._logger.info("Turn cancelled while streaming")
                return None

            self._usage = record_usage(self._usage, result.usage)
            await _call_maybe_async(cb.on_usage, self._usage)

            calls = list(result.tool_calls or ())
            if not calls:
                new_messages.append(Message.assistant(result.text))
                return TurnOutcome(
                    messages=new_messages,
                    result=result,
                    iterations=iteration,
                    tool_outcomes=tool_outcomes,
                )

            outcomes = await run_scoped(
                lambda scope: self._orchestrator.run_batch(scope, calls),
                name="tool-batch",
                link=signal,
                logger=self._logger,
            )
            if outcomes is None:
                self._logger.info("Turn cancelled while running tools")
                return None
            await _call_maybe_async(cb.on_tool_results, calls, outcomes)

            round_messages = [Message.assistant(result.text, calls)]
            round_messages.extend(self._orchestrator.to_messages(calls, outcomes))
            working.extend(round_messages)
            new_messages.extend(round_messages)
            tool_outcomes.extend(outcomes)

        self._logger.warning(f"Max tool iterations ({self._max_tool_iterations}) reached")
        return TurnOutcome(
            messages=new_messages,
            result=result,
            iterations=self._max_tool_iterations,
            tool_outcomes=tool_outcomes,
            limit_hit=True,
        )

    async def _stream_once(
        self,
        scope: Scope,
        messages: Sequence[Message],
        cb: TurnCallbacks,
        format: Optional[Dict[str, Any]],
        emit_text: bool
    ) -> ChatResult:
        spinner = None
        if self._sink is not None:
            spinner = use_spinner(scope, self._sink, interval=self._spinner_interval)
            spinner.start("thinking")

        stream = await self._backend.stream_chat(
            scope,
            messages,
            tools=self._registry,
            format=format,
            emit_text=emit_text,
        )

        async def on_event(event: ChatEvent) -> None:
            if isinstance(event, TextEvent):
                if spinner is not None:
                    await spinner.stop()
                await _call_maybe_async(cb.on_text, event.content)
            elif isinstance(event, ThinkingEvent):
                if spinner is not None:
                    spinner.start("thinking")
                await _call_maybe_async(cb.on_thinking, event.content)
            elif isinstance(event, ToolCallsEvent):
                if spinner is not None:
                    await spinner.stop()
                await _call_maybe_async(cb.on_tool_calls, event.tool_calls)

        result = await consume_stream(stream, on_event)
        if spinner is not None:
            await spinner.stop()
        return result


class ChatSession:
    """Owns the conversation history and usage for one interactive session.

    ``signal`` spans the whole session; each submitted turn gets its own
    signal linked to it, so ``cancel_turn()`` stops only the turn in flight.
    """

    def __init__(
        self,
        service: ChatService,
        *,
        system_prompt: Optional[str] = None,
        turn_retries: int = 0,
        signal: Optional[AbortSignal] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._service = service
        self._system_prompt = system_prompt
        self._turn_retries = max(0, turn_retries)
        self.signal = signal or AbortSignal()
        self._logger = logger or logging.getLogger(__name__)
        self._turn_signal: Optional[AbortSignal] = None
        self.history: List[Message] = []
        self.clear()

    @property
    def usage(self) -> UsageState:
        return self._service.usage

    @property
    def busy(self) -> bool:
        return self._turn_signal is not None

    def clear(self) -> None:
        """Reset history to the system prompt (if any)."""
        self.history = [Message.system(self._system_prompt)] if self._system_prompt else []

    def cancel_turn(self, reason: Any = "interrupted") -> bool:
        """Abort the turn in flight. Returns False when idle."""
        if self._turn_signal is None:
            return False
        self._turn_signal.abort(reason)
        return True

    async def submit(
        self,
        text: str,
        callbacks: Optional[TurnCallbacks] = None
    ) -> Optional[TurnOutcome]:
        """Send a user message; on success its reply is appended to history.

        A failed or cancelled turn removes the user message again so the
        history stays well-formed. Returns ``None`` for a cancelled turn.
        """
        self.history.append(Message.user(text))
        turn_signal = AbortSignal()
        unlink = self.signal.add_listener(turn_signal.abort)
        self._turn_signal = turn_signal
        try:
            outcome = await self._run_with_retries(callbacks, turn_signal)
        except (Exception, asyncio.CancelledError):
            self._discard_user_message()
            raise
        finally:
            unlink()
            self._turn_signal = None

        if outcome is None:
            self._discard_user_message()
            return None
        self.history.extend(outcome.messages)
        return outcome

    async def _run_with_retries(
        self,
        callbacks: Optional[TurnCallbacks],
        signal: AbortSignal
    ) -> Optional[TurnOutcome]:
        attempt = 0
        while True:
            try:
                return await self._service.run_turn(self.history, callbacks=callbacks, signal=signal)
            except TURN_RETRYABLE_ERRORS as e:
                if attempt >= self._turn_retries or signal.aborted:
                    raise
                attempt += 1
                self._logger.warning(f"Turn failed ({e}); retrying ({attempt}/{self._turn_retries})")

    def _discard_user_message(self) -> None:
        if self.history and self.history[-1].role is MessageRole.USER:
            self.history.pop()
