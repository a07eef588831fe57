"""
CLI presentation layer - Clean interface for command-line interactions.
Renders streamed turns and handles the interactive commands.
"""

from __future__ import annotations
import asyncio
import json
import logging
import signal
from typing import Callable, Optional, Sequence

from ..application.chat_service import ChatSession, TurnCallbacks, TurnOutcome
from ..domain.interfaces.llm_client import StatusSink
from ..domain.models.result import Ok
from ..domain.models.tool import ToolCall
from ..domain.models.usage import format_usage_line
from ..domain.services.tool_orchestrator import ToolOutcome
from ..runtime.spinner import ConsoleSink
from ..utils import format_conversation_history, truncate_text

EXIT_COMMANDS = ("quit", "exit")


class ChatCLI:
    """CLI interface for chat interactions."""

    def __init__(
        self,
        session: ChatSession,
        *,
        model: str,
        tools: Sequence[str] = (),
        quiet: bool = False,
        sink: Optional[StatusSink] = None,
        read_line: Optional[Callable[[str], str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._session = session
        self._model = model
        self._tools = list(tools)
        self._quiet = quiet
        self._sink = sink or ConsoleSink()
        self._read_line = read_line or input
        self._logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        self._sink.write(f"{text}\n")

    def _info(self, text: str = "") -> None:
        if not self._quiet:
            self._print(text)

    def callbacks(self) -> TurnCallbacks:
        """Render callbacks for one turn."""

        def on_text(content: str) -> None:
            self._sink.write(content)

        def on_tool_calls(calls: Sequence[ToolCall]) -> None:
            self._info(f"\n[Calling {len(calls)} tool(s)...]")
            for call in calls:
                self._info(f"  - {call.name}({json.dumps(dict(call.arguments), ensure_ascii=False)})")

        def on_tool_results(calls: Sequence[ToolCall], outcomes: Sequence[ToolOutcome]) -> None:
            for outcome in outcomes:
                if isinstance(outcome, Ok):
                    self._info(f"  [{outcome.value.id}] OK: {truncate_text(outcome.value.content, 80)}")
                else:
                    self._info(f"  [{outcome.error.call_id}] ERROR: {outcome.error.message}")
            self._info("[Continuing...]\n")

        return TurnCallbacks(on_text=on_text, on_tool_calls=on_tool_calls, on_tool_results=on_tool_results)

    async def run_turn(self, message: str) -> Optional[TurnOutcome]:
        """Submit one message and render the reply."""
        if not self._quiet:
            self._sink.write("Assistant: ")
        outcome = await self._session.submit(message, self.callbacks())
        self._print()
        if outcome is None:
            self._info("[Interrupted]\n")
            return None
        if outcome.limit_hit:
            self._info("[Max tool iterations reached]\n")
        self._info(format_usage_line(self._session.usage))
        self._info()
        return outcome

    async def single_message(self, message: str) -> int:
        """Process a single message. Returns a process exit code."""
        try:
            outcome = await self.run_turn(message)
        except Exception as e:
            self._logger.error(f"Single message error: {e}")
            self._print(f"\nError: {e}")
            return 1
        return 0 if outcome is not None else 130

    async def interactive_mode(self) -> None:
        """Run interactive chat mode."""
        self._info_welcome()
        remove_handler = self._install_interrupt_handler()
        try:
            while True:
                try:
                    user_input = (await asyncio.to_thread(self._read_line, "You: ")).strip()
                except EOFError:
                    break

                if not user_input:
                    continue
                if user_input.lower() in EXIT_COMMANDS:
                    break
                if self._handle_cli_commands(user_input):
                    continue

                try:
                    await self.run_turn(user_input)
                except Exception as e:
                    self._logger.error(f"Interactive mode error: {e}")
                    self._print(f"\n\nError: {e}")
                    self._info("Please try again.\n")
        finally:
            remove_handler()
        self._info("Goodbye!")

    def _info_welcome(self) -> None:
        """Print welcome message with session status."""
        self._info("Ollama Stream - Interactive Mode")
        self._info(f"Model: {self._model}")
        self._info(f"Tools: {', '.join(self._tools) if self._tools else 'Disabled'}")
        self._info(f"Context: {self._session.usage.context_limit:,} tokens")
        self._info("Commands: 'quit'/'exit' to exit, 'clear' to clear history, "
                   "'history' to show history, 'usage' to show token usage")
        self._info("-" * 60)

    def _handle_cli_commands(self, user_input: str) -> bool:
        """Handle built-in CLI commands."""
        command = user_input.lower()

        if command == "clear":
            self._session.clear()
            self._info("History cleared")
            return True
        elif command == "history":
            self._print("\nConversation History:")
            self._print(format_conversation_history(self._session.history))
            return True
        elif command == "usage":
            usage = self._session.usage
            self._print(format_usage_line(usage))
            self._print(
                f"  turns: {usage.turns} | prompt: {usage.cumulative.prompt_tokens:,} "
                f"| completion: {usage.cumulative.completion_tokens:,}"
            )
            return True

        return False

    def _install_interrupt_handler(self) -> Callable[[], None]:
        """Ctrl-C cancels the turn in flight instead of exiting."""

        def on_interrupt() -> None:
            if not self._session.cancel_turn():
                self._info("\n\nUse 'quit' or 'exit' to leave the chat")

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, on_interrupt)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; keep default KeyboardInterrupt
            return lambda: None
        return lambda: loop.remove_signal_handler(signal.SIGINT)
