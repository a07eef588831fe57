"""Domain models package."""

from .chat import (
    ChatEvent,
    ChatResult,
    ParseError,
    StreamStep,
    StructuredResult,
    TextEvent,
    ThinkingEvent,
    ToolCallsEvent,
)
from .conversation import Message, MessageRole
from .result import Err, Ok, Result, err, ok
from .tool import ToolCall, ToolDefinition, ToolError, ToolErrorPhase, ToolResult, define_tool
from .usage import TokenUsage, UsageState, empty_usage, record_usage, usage_from_chunk

__all__ = [
    "ChatEvent",
    "ChatResult",
    "ParseError",
    "StreamStep",
    "StructuredResult",
    "TextEvent",
    "ThinkingEvent",
    "ToolCallsEvent",
    "Message",
    "MessageRole",
    "Err",
    "Ok",
    "Result",
    "err",
    "ok",
    "ToolCall",
    "ToolDefinition",
    "ToolError",
    "ToolErrorPhase",
    "ToolResult",
    "define_tool",
    "TokenUsage",
    "UsageState",
    "empty_usage",
    "record_usage",
    "usage_from_chunk",
]
