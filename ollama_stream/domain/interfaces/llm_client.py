"""
LLM client protocol interface.
Defines the contract for streaming chat backends and status output.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Protocol, Sequence, TYPE_CHECKING

from ..models.conversation import Message
from .tool_plugin import ToolRegistry

if TYPE_CHECKING:
    from ...runtime.scope import Scope
    from ..services.stream_processor import ChatEventStream


class ChatBackend(Protocol):
    """Opens one streaming turn against the chat backend."""

    async def stream_chat(
        self,
        scope: "Scope",
        messages: Sequence[Message],
        tools: Optional[ToolRegistry] = None,
        format: Optional[Dict[str, Any]] = None,
        emit_text: bool = True,
    ) -> "ChatEventStream":
        """Send the request; the response is released when ``scope`` exits."""
        ...


class StatusSink(Protocol):
    """Write-only text output used by status indicators and renderers."""

    def write(self, text: str) -> None:
        ...
