"""
Built-in example tools.

``build_default_registry()`` returns a registry holding every tool below.
"""

from __future__ import annotations
import logging
from typing import List, Optional

from ..domain.models.tool import ToolDefinition
from ..infrastructure.tools.registry import DefaultToolRegistry, create_tool_registry
from . import calc, search, weather

BUILTIN_TOOLS: List[ToolDefinition] = [weather.TOOL, calc.TOOL, search.TOOL]


def build_default_registry(logger: Optional[logging.Logger] = None) -> DefaultToolRegistry:
    return create_tool_registry(BUILTIN_TOOLS, logger=logger)


__all__ = ["BUILTIN_TOOLS", "build_default_registry"]
