"""
Structured concurrency scope.

Every background activity (a stream read, an animated status indicator, a
tool invocation) is spawned as a child of a ``Scope``. A child never outlives
its scope: when the scope exits, by any path, it aborts its signal, cancels
and awaits its children, then runs its cleanups in reverse registration
order. A failing child cancels its siblings, interrupts the scope body and
is re-raised from the scope's exit.

    async with Scope("turn") as scope:
        spinner = use_spinner(scope, sink)
        results = await scope.all(execute(call) for call in calls)

Cancelling a scope (``scope.cancel()`` or aborting its ``link`` signal) is not
an error: the scope cleans up, exits quietly and sets ``scope.cancelled``.
"""

from __future__ import annotations
import asyncio
import inspect
import logging
from enum import Enum
from typing import (
    Any, AsyncContextManager, Awaitable, Callable, Coroutine, Generic, Iterable,
    List, Optional, TypeVar,
)

from .signal import AbortSignal

T = TypeVar("T")


class ScopeState(Enum):
    IDLE = "idle"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable


class Scope:
    """Owner of child tasks and cleanups with a bounded lifetime."""

    def __init__(
        self,
        name: str = "scope",
        *,
        link: Optional[AbortSignal] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.name = name
        self.signal = AbortSignal()
        self.cancelled = False
        self._link = link
        self._unlink: Optional[Callable[[], None]] = None
        self._logger = logger or logging.getLogger(__name__)
        self._state = ScopeState.IDLE
        self._host: Optional[asyncio.Task] = None
        self._tasks: List[asyncio.Task] = []
        self._cleanups: List[Callable[[], Any]] = []
        self._fault: Optional[BaseException] = None
        self._interrupted = False

    @property
    def state(self) -> ScopeState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ScopeState.OPEN

    @property
    def children(self) -> List[asyncio.Task]:
        return [task for task in self._tasks if not task.done()]

    async def __aenter__(self) -> Scope:
        if self._state is not ScopeState.IDLE:
            raise RuntimeError(f"Scope {self.name!r} cannot be entered twice")
        self._host = asyncio.current_task()
        if self._host is None:
            raise RuntimeError("Scope must be entered from within a task")
        self._state = ScopeState.OPEN
        if self._link is not None:
            self._unlink = self._link.add_listener(self._on_link_abort)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._state = ScopeState.CLOSING
        if self._unlink is not None:
            self._unlink()
            self._unlink = None

        # Cleanup must finish even if this task is cancelled meanwhile; the
        # cancellation is re-raised once it has.
        shutdown = asyncio.ensure_future(self._shutdown())
        interrupted = False
        while not shutdown.done():
            try:
                await asyncio.shield(shutdown)
            except asyncio.CancelledError:
                interrupted = True
        self._state = ScopeState.CLOSED
        cleanup_error = shutdown.result()

        body_cancelled = exc_type is not None and issubclass(exc_type, asyncio.CancelledError)
        cancelled_here = body_cancelled or interrupted
        if self._interrupted:
            external = self._host.uncancel() > 0 and cancelled_here
        else:
            external = cancelled_here

        if external:
            self._logger.debug(f"Scope {self.name!r} cancelled from outside")
            if body_cancelled:
                return False
            raise asyncio.CancelledError()

        if self._fault is not None:
            if exc_type is None or body_cancelled:
                raise self._fault
            self._logger.debug(f"Scope {self.name!r} child fault superseded by {exc_type.__name__}")
            return False

        if self._interrupted:
            self.cancelled = True
            if body_cancelled:
                self._logger.debug(f"Scope {self.name!r} halted")
                return True

        if cleanup_error is not None and exc_type is None:
            raise cleanup_error
        return False

    async def _shutdown(self) -> Optional[BaseException]:
        """Abort, halt children, then run cleanups LIFO. Returns the first cleanup error."""
        self.signal.abort("closed")

        pending = [task for task in self._tasks if not task.done()]
        for task in reversed(pending):
            task.cancel()
        if pending:
            await asyncio.wait(pending)

        first_error: Optional[BaseException] = None
        while self._cleanups:
            callback = self._cleanups.pop()
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.error(f"Cleanup in scope {self.name!r} failed: {e}")
                if first_error is None:
                    first_error = e
        return first_error

    def spawn(self, coro: Coroutine[Any, Any, T], *, name: Optional[str] = None) -> "asyncio.Task[T]":
        """Run ``coro`` as a child task of this scope."""
        if self._state is not ScopeState.OPEN:
            coro.close()
            raise RuntimeError(f"Cannot spawn into scope {self.name!r} in state {self._state.value}")
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.append(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def all(self, operations: Iterable[Awaitable[T]]) -> List[T]:
        """Run operations concurrently; results keep submission order."""
        tasks = [
            self.spawn(op if inspect.iscoroutine(op) else _await(op))
            for op in operations
        ]
        return [await task for task in tasks]

    def cancel_children(self) -> int:
        """Cancel every running child. Returns how many were cancelled."""
        count = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                count += 1
        return count

    def cancel(self) -> None:
        """Halt the scope: abort its signal, cancel children, interrupt the body."""
        if self._state is not ScopeState.OPEN:
            return
        self.signal.abort("cancelled")
        self.cancel_children()
        self._interrupt_host()

    def ensure(self, callback: Callable[[], Any]) -> Callable[[], Any]:
        """Register a cleanup (sync or async) to run when the scope exits."""
        if self._state is ScopeState.CLOSED:
            raise RuntimeError(f"Scope {self.name!r} is closed")
        self._cleanups.append(callback)
        return callback

    async def enter(self, cm: AsyncContextManager[T]) -> T:
        """Enter an async context manager whose exit runs on scope exit."""
        value = await cm.__aenter__()
        self.ensure(lambda: cm.__aexit__(None, None, None))
        return value

    async def use(self, resource: Resource[T]) -> T:
        return await resource.acquire(self)

    def child(self, name: Optional[str] = None) -> Scope:
        """A nested scope that is cancelled when this one aborts."""
        return Scope(name or f"{self.name}.child", link=self.signal, logger=self._logger)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task in self._tasks:
            self._tasks.remove(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if self._fault is None:
            self._fault = exc
        self._logger.debug(f"Child {task.get_name()} of scope {self.name!r} failed: {exc!r}")
        if self._state is ScopeState.OPEN:
            self.cancel_children()
            self._interrupt_host()

    def _on_link_abort(self, reason: Any) -> None:
        self._logger.debug(f"Scope {self.name!r} link aborted: {reason!r}")
        self.cancel()

    def _interrupt_host(self) -> None:
        if self._interrupted or self._host is None or self._host.done():
            return
        self._interrupted = True
        self._host.cancel()

    def __repr__(self) -> str:
        return f"<Scope {self.name!r} {self._state.value} children={len(self.children)}>"


class Resource(Generic[T]):
    """Acquisition plus an exactly-once release bound to a scope."""

    def __init__(
        self,
        acquire: Callable[[], Awaitable[T]],
        release: Callable[[T], Any]
    ):
        self._acquire = acquire
        self._release = release
        self._value: Optional[T] = None
        self._acquired = False
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def acquire(self, scope: Scope) -> T:
        if self._acquired:
            raise RuntimeError("Resource already acquired")
        self._value = await self._acquire()
        self._acquired = True
        scope.ensure(self.release)
        return self._value

    async def release(self) -> None:
        if not self._acquired or self._released:
            return
        self._released = True
        result = self._release(self._value)
        if inspect.isawaitable(result):
            await result


async def run_scoped(
    operation: Callable[[Scope], Awaitable[T]],
    *,
    name: str = "scope",
    link: Optional[AbortSignal] = None,
    logger: Optional[logging.Logger] = None
) -> Optional[T]:
    """Run ``operation`` in a fresh scope. Returns ``None`` if it was cancelled."""
    async with Scope(name, link=link, logger=logger) as scope:
        return await operation(scope)
    return None
