"""
Tool domain models - Pure business logic for tool operations.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING
import json
import uuid

if TYPE_CHECKING:
    from ..interfaces.tool_plugin import ParameterSchema


class ToolErrorPhase(Enum):
    """Stage of tool execution at which a call failed."""
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    EXECUTION = "execution"


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class ToolCall:
    """A backend-requested tool invocation. Immutable once received."""
    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", MappingProxyType(dict(self.arguments)))

    def to_wire(self) -> Dict[str, Any]:
        """Convert to Ollama message format."""
        return {
            "id": self.id,
            "function": {
                "name": self.name,
                "arguments": dict(self.arguments),
            },
        }

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> ToolCall:
        """Create ToolCall from a record's ``message.tool_calls`` entry."""
        if "function" in data:
            func_data = data.get("function") or {}
            name = func_data.get("name", "")
            raw_args = func_data.get("arguments", {})
        else:
            # Direct format
            name = data.get("name", "")
            raw_args = data.get("arguments", {})

        if isinstance(raw_args, str):
            try:
                arguments = json.loads(raw_args) if raw_args.strip() else {}
            except json.JSONDecodeError:
                arguments = {}
        else:
            arguments = raw_args or {}
        if not isinstance(arguments, Mapping):
            arguments = {}

        return cls(id=data.get("id") or _new_call_id(), name=name or "", arguments=arguments)


@dataclass(frozen=True)
class ToolResult:
    """Successful tool execution."""
    id: str
    content: str
    ok: bool = True


@dataclass(frozen=True)
class ToolError:
    """Failed tool execution, scoped to a single call."""
    call_id: str
    tool_name: str
    message: str
    phase: ToolErrorPhase
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class ToolDefinition:
    """Name, description, parameter schema and handler of one tool."""
    name: str
    description: str
    parameters: "ParameterSchema"
    execute: Callable[[Any], Any]

    def to_api_format(self) -> Dict[str, Any]:
        """Convert to the backend's tool descriptor format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.describe(),
            },
        }


def define_tool(
    name: str,
    description: str,
    parameters: "ParameterSchema",
    execute: Callable[[Any], Any],
) -> ToolDefinition:
    """Define a tool with a validating parameter schema.

    Example:
        weather = define_tool(
            name="get_weather",
            description="Get the current weather for a location",
            parameters=ModelSchema(WeatherArgs),
            execute=fetch_weather,
        )
    """
    if not name:
        raise ValueError("Tool name must be a non-empty string")
    return ToolDefinition(name=name, description=description, parameters=parameters, execute=execute)


def canonicalize_tool_calls(tool_calls: Any) -> List[ToolCall]:
    """Convert a raw ``tool_calls`` list into ToolCall objects, skipping junk."""
    if not tool_calls or not isinstance(tool_calls, list):
        return []
    return [ToolCall.from_wire(item) for item in tool_calls if isinstance(item, Mapping)]
