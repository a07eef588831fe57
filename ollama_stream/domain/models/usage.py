"""
Token usage domain models - per-turn and cumulative accounting.

All functions here are pure: they take a value and return a new one, so the
session can hold a single ``UsageState`` and replace it between turns.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple


def _count(value: Any) -> int:
    """Coerce a raw backend counter to a non-negative int (absent -> 0)."""
    if value is None:
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class TokenUsage:
    """Token counts for one turn. ``total_tokens`` is always derived."""
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @classmethod
    def from_counts(cls, prompt: Any = None, completion: Any = None) -> TokenUsage:
        return cls(prompt_tokens=_count(prompt), completion_tokens=_count(completion))

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


def empty_usage() -> TokenUsage:
    return TokenUsage()


def usage_from_chunk(chunk: Mapping[str, Any]) -> TokenUsage:
    """Usage reported on a final (``done: true``) Ollama record."""
    return TokenUsage.from_counts(chunk.get("prompt_eval_count"), chunk.get("eval_count"))


@dataclass(frozen=True)
class UsageState:
    """Session-scoped usage: last turn, running total and per-turn history."""
    current: TokenUsage = field(default_factory=TokenUsage)
    cumulative: TokenUsage = field(default_factory=TokenUsage)
    context_limit: int = 0
    history: Tuple[TokenUsage, ...] = ()

    @classmethod
    def initial(cls, context_limit: int) -> UsageState:
        return cls(context_limit=context_limit)

    @property
    def percent_used(self) -> float:
        if self.context_limit <= 0:
            return 0.0
        return self.cumulative.total_tokens / self.context_limit * 100

    @property
    def turns(self) -> int:
        return len(self.history)


def record_usage(state: UsageState, usage: Optional[TokenUsage]) -> UsageState:
    """Fold one completed turn into the session state."""
    usage = usage or TokenUsage()
    return UsageState(
        current=usage,
        cumulative=state.cumulative + usage,
        context_limit=state.context_limit,
        history=state.history + (usage,),
    )


def format_usage_line(state: UsageState) -> str:
    """Render ``[tokens: +N | total: T / L (P%)]`` for the last turn."""
    return (
        f"[tokens: +{state.current.total_tokens} | "
        f"total: {state.cumulative.total_tokens:,} / {state.context_limit:,} "
        f"({state.percent_used:.2f}%)]"
    )
