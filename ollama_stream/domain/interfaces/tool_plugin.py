"""
Tool protocol interfaces.
Defines the contract for parameter schemas and tool registries.
"""

from __future__ import annotations
from typing import Any, ContextManager, Dict, List, Optional, Protocol

from ..models.result import Result
from ..models.tool import ToolDefinition


class SchemaViolation(Exception):
    """Arguments did not satisfy a parameter schema."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class ParameterSchema(Protocol):
    """Validates raw tool arguments and describes itself as JSON Schema."""

    def validate(self, raw: Any) -> Result[Any, SchemaViolation]:
        """Return the validated (possibly converted) value, or the violation."""
        ...

    def describe(self) -> Dict[str, Any]:
        """JSON-Schema-like description sent to the backend."""
        ...


class ToolRegistry(Protocol):
    """Read-only view of registered tools used during execution."""

    def get(self, name: str) -> Optional[ToolDefinition]:
        ...

    def names(self) -> List[str]:
        ...

    def to_ollama_format(self) -> List[Dict[str, Any]]:
        ...

    def locked(self) -> ContextManager[None]:
        """Reject registrations for the duration of the block."""
        ...
