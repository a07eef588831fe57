"""Tool infrastructure - registry and parameter schemas."""

from .registry import DefaultToolRegistry, create_tool_registry
from .schemas import JsonSchema, ModelSchema

__all__ = [
    "DefaultToolRegistry",
    "create_tool_registry",
    "JsonSchema",
    "ModelSchema",
]
