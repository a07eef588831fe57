"""
Model context limits - known context window sizes per Ollama model tag.
"""

from __future__ import annotations
from typing import Dict

DEFAULT_CONTEXT_LIMIT = 8_192

MODEL_CONTEXT_LIMITS: Dict[str, int] = {
    "gemma3:4b": 128_000,
    "gemma3:12b": 128_000,
    "gemma3:27b": 128_000,
    "gemma2": 8_192,
    "gemma2:2b": 8_192,
    "gemma2:9b": 8_192,
    "gemma2:27b": 8_192,
    "llama3.2": 128_000,
    "llama3.2:1b": 128_000,
    "llama3.2:3b": 128_000,
    "llama3.1": 128_000,
    "llama3.1:8b": 128_000,
    "llama3.1:70b": 128_000,
    "mistral": 32_000,
    "mixtral": 32_000,
    "qwen2.5": 128_000,
    "qwen3:8b": 128_000,
    "qwen3:30b": 128_000,
    "phi3": 128_000,
    "deepseek-r1": 64_000,
}


def get_context_limit(model_name: str) -> int:
    """Context window for ``model_name``.

    Exact tags win; otherwise the untagged family name is tried
    (``mistral:7b`` -> ``mistral``), then ``DEFAULT_CONTEXT_LIMIT``.
    """
    name = (model_name or "").strip().lower()
    if name in MODEL_CONTEXT_LIMITS:
        return MODEL_CONTEXT_LIMITS[name]
    family = name.split(":", 1)[0]
    return MODEL_CONTEXT_LIMITS.get(family, DEFAULT_CONTEXT_LIMIT)
