"""Configuration infrastructure."""

from .model_limits import DEFAULT_CONTEXT_LIMIT, MODEL_CONTEXT_LIMITS, get_context_limit
from .settings import (
    AppSettings,
    ChatSettings,
    OllamaSettings,
    RetrySettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "DEFAULT_CONTEXT_LIMIT",
    "MODEL_CONTEXT_LIMITS",
    "get_context_limit",
    "AppSettings",
    "ChatSettings",
    "OllamaSettings",
    "RetrySettings",
    "get_settings",
    "reload_settings",
]
