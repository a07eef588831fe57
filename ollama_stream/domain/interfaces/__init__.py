"""Domain interfaces package - Protocols for ports."""

from .llm_client import ChatBackend, StatusSink
from .tool_plugin import ParameterSchema, SchemaViolation, ToolRegistry

__all__ = [
    "ChatBackend",
    "StatusSink",
    "ParameterSchema",
    "SchemaViolation",
    "ToolRegistry",
]
