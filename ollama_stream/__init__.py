"""
ollama-stream - Streaming chat completion engine for Ollama with structured
concurrency and concurrent tool calling.
"""

__version__ = "0.1.0"

__all__ = [
    "OllamaChatClient",
    "ChatService",
    "ChatSession",
    "Scope",
    "AbortSignal",
    "define_tool",
]


# Lazy attribute access to avoid importing httpx and pydantic at package import time.
def __getattr__(name: str):  # pragma: no cover - simple lazy loader
    if name == "OllamaChatClient":
        from .infrastructure.ollama.client import OllamaChatClient
        return OllamaChatClient
    if name in {"ChatService", "ChatSession"}:
        from .application import chat_service
        return getattr(chat_service, name)
    if name in {"Scope", "AbortSignal"}:
        from . import runtime
        return getattr(runtime, name)
    if name == "define_tool":
        from .domain.models.tool import define_tool
        return define_tool
    raise AttributeError(f"module 'ollama_stream' has no attribute {name!r}")
