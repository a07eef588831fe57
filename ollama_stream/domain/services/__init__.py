"""Domain services package."""

from .stream_processor import ChatEventStream, StreamAccumulator, StreamState, consume_stream
from .structured_output import parse_structured
from .tool_orchestrator import (
    ToolOrchestrator,
    execute_tool_call,
    execute_tool_calls,
    format_tool_results_for_conversation,
)

__all__ = [
    "ChatEventStream",
    "StreamAccumulator",
    "StreamState",
    "consume_stream",
    "parse_structured",
    "ToolOrchestrator",
    "execute_tool_call",
    "execute_tool_calls",
    "format_tool_results_for_conversation",
]
