"""Ollama infrastructure - HTTP client, NDJSON decoding and retries."""

from .client import OllamaChatClient
from .ndjson import NDJSONDecoder, open_ndjson
from .retry import RetryConfig, RetryPolicy

__all__ = [
    "OllamaChatClient",
    "NDJSONDecoder",
    "open_ndjson",
    "RetryConfig",
    "RetryPolicy",
]
