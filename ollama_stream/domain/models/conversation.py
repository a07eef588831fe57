"""
Conversation domain models - Pure business logic for chat interactions.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .tool import ToolCall, canonicalize_tool_calls


class MessageRole(Enum):
    """Message roles in conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """Represents a single message in conversation."""
    role: MessageRole
    content: str = ""
    tool_calls: Optional[Tuple[ToolCall, ...]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[Sequence[ToolCall]] = None) -> Message:
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for API calls."""
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        """Create Message from dictionary."""
        try:
            role = MessageRole(data.get("role", "user"))
        except ValueError:
            role = MessageRole.USER
        calls = canonicalize_tool_calls(data.get("tool_calls"))
        return cls(
            role=role,
            content=data.get("content") or "",
            tool_calls=tuple(calls) if calls else None,
            tool_call_id=data.get("tool_call_id"),
        )


def to_api_format(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Convert a message sequence to the format expected by the chat API."""
    return [message.to_dict() for message in messages]
