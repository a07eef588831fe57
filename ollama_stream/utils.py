"""
Utility functions for the ollama-stream CLI.
"""

import logging
import sys
from typing import Optional, Sequence

from .domain.models.conversation import Message

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "WARNING", fmt: Optional[str] = None) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=fmt or DEFAULT_LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ],
        force=True,
    )

    # Reduce noise from third-party libraries unless debugging
    if level.upper() != "DEBUG":
        for name in ("httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.WARNING)


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def format_conversation_history(history: Sequence[Message], max_entries: int = 10) -> str:
    """Format conversation history for display."""
    if not history:
        return "No conversation history"

    result = []
    recent_history = history[-max_entries:] if len(history) > max_entries else history

    for i, message in enumerate(recent_history, 1):
        role = message.role.value
        content = message.content
        if message.tool_calls:
            names = ", ".join(call.name for call in message.tool_calls)
            content = f"{content} [tool calls: {names}]".strip()

        # Truncate long messages
        display_content = truncate_text(content.replace("\n", " "), 150)
        result.append(f"  {i}. {role}: {display_content}")

    if len(history) > max_entries:
        result.insert(0, f"  ... (showing last {max_entries} of {len(history)} messages)")

    return "\n".join(result)
