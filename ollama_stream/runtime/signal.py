"""
Abort signal - a one-shot, explicitly passed cancellation flag.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class AbortSignal:
    """Fires once; listeners are called synchronously with the abort reason."""

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._listeners: List[Listener] = []
        self._event: Optional[asyncio.Event] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def abort(self, reason: Any = None) -> None:
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        if self._event is not None:
            self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(reason)
            except Exception as e:
                logger.error(f"Abort listener failed: {e}")

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Subscribe to the abort. Returns an unsubscribe callable."""
        if self._aborted:
            listener(self._reason)
            return lambda: None
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def wait(self) -> Any:
        if not self._aborted:
            if self._event is None:
                self._event = asyncio.Event()
            await self._event.wait()
        return self._reason

    def __repr__(self) -> str:
        state = f"aborted reason={self._reason!r}" if self._aborted else "pending"
        return f"<AbortSignal {state}>"
