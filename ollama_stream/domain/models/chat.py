"""
Chat stream domain models - events emitted while a turn is in flight and
the aggregate produced when it ends.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Generic, Optional, Tuple, TypeVar, Union

from .tool import ToolCall
from .usage import TokenUsage

T = TypeVar("T")


@dataclass(frozen=True)
class TextEvent:
    """Incremental content delta."""
    content: str
    type: str = "text"


@dataclass(frozen=True)
class ThinkingEvent:
    """Incremental reasoning-trace delta."""
    content: str
    type: str = "thinking"


@dataclass(frozen=True)
class ToolCallsEvent:
    """Tool calls reported by a single record (not the cumulative list)."""
    tool_calls: Tuple[ToolCall, ...]
    type: str = "tool_calls"


ChatEvent = Union[TextEvent, ThinkingEvent, ToolCallsEvent]


@dataclass(frozen=True)
class ChatResult:
    """Terminal aggregate of one turn."""
    text: str
    usage: TokenUsage
    thinking: Optional[str] = None
    tool_calls: Optional[Tuple[ToolCall, ...]] = None


@dataclass(frozen=True)
class StreamStep:
    """One pull from a chat stream: an event, or the terminal result."""
    done: bool
    value: Union[ChatEvent, ChatResult]


@dataclass(frozen=True)
class StructuredResult(Generic[T]):
    """Successful structured (schema-constrained) turn."""
    data: T
    raw: str
    usage: TokenUsage
    thinking: Optional[str] = None


@dataclass(frozen=True)
class ParseError:
    """Aggregated text failed to parse (``json``) or validate (``validation``)."""
    phase: str
    message: str
    raw: str
    cause: Optional[Any] = None
