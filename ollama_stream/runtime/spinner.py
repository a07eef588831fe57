"""
Spinner - animated status indicator bound to a scope.

The tick loop is a child task of the scope and the terminal clear is a scope
cleanup, so the line is wiped even when the turn fails or is cancelled.
"""

from __future__ import annotations
import asyncio
import sys
from typing import Awaitable, Optional, TextIO, TypeVar

from ..domain.interfaces.llm_client import StatusSink
from .scope import Scope

T = TypeVar("T")

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
SPINNER_CLEAR = "\r" + " " * 20 + "\r"
DEFAULT_INTERVAL = 0.08


class ConsoleSink:
    """StatusSink writing straight to a terminal stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    def write(self, text: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(text)
        stream.flush()


class Spinner:
    def __init__(self, scope: Scope, sink: StatusSink, interval: float = DEFAULT_INTERVAL):
        self._scope = scope
        self._sink = sink
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._label = "thinking"

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, label: str = "thinking") -> None:
        """Start animating. A second call while running only changes the label."""
        self._label = label
        if self.running:
            return
        self._task = self._scope.spawn(self._tick(), name="spinner")

    async def stop(self) -> None:
        """Halt the animation and clear the line. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
            await asyncio.wait([task])
        self._sink.write(SPINNER_CLEAR)

    async def _tick(self) -> None:
        frame = 0
        while True:
            self._sink.write(f"\r{SPINNER_FRAMES[frame]} {self._label}...")
            frame = (frame + 1) % len(SPINNER_FRAMES)
            await asyncio.sleep(self._interval)


def use_spinner(scope: Scope, sink: StatusSink, *, interval: float = DEFAULT_INTERVAL) -> Spinner:
    """Create a spinner whose clear is guaranteed by ``scope``."""
    spinner = Spinner(scope, sink, interval)
    scope.ensure(spinner.stop)
    return spinner


async def with_spinner(
    scope: Scope,
    sink: StatusSink,
    label: str,
    awaitable: Awaitable[T],
    *,
    interval: float = DEFAULT_INTERVAL
) -> T:
    """Await ``awaitable`` with a spinner showing ``label`` around it."""
    spinner = use_spinner(scope, sink, interval=interval)
    spinner.start(label)
    try:
        return await awaitable
    finally:
        await spinner.stop()
