"""
Tool registry implementation - Infrastructure component managing tool definitions.
Built once per session; read-only while a batch of calls is executing.
"""

from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ...domain.errors import ToolRegistrationError
from ...domain.models.tool import ToolDefinition


class DefaultToolRegistry:
    """Name-keyed tool registry that rejects duplicates and locked writes."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)
        self._tools: Dict[str, ToolDefinition] = {}
        self._lock_depth = 0

    @property
    def is_locked(self) -> bool:
        return self._lock_depth > 0

    def register(self, tool: ToolDefinition) -> ToolDefinition:
        """Register a tool definition."""
        if self.is_locked:
            raise ToolRegistrationError(
                f"Cannot register tool '{tool.name}' while tool calls are executing"
            )
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        self._logger.debug(f"Registered tool: {tool.name}")
        return tool

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Get tool definition by name."""
        return self._tools.get(name)

    def names(self) -> List[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def to_ollama_format(self) -> List[Dict[str, Any]]:
        """Tool descriptors for the chat request."""
        return [tool.to_api_format() for tool in self._tools.values()]

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Reject registrations for the duration of the block. Re-entrant."""
        self._lock_depth += 1
        try:
            yield
        finally:
            self._lock_depth -= 1

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def create_tool_registry(
    tools: Iterable[ToolDefinition] = (),
    logger: Optional[logging.Logger] = None
) -> DefaultToolRegistry:
    """Build a registry from tool definitions."""
    registry = DefaultToolRegistry(logger=logger)
    for tool in tools:
        registry.register(tool)
    return registry
