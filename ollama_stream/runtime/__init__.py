"""Runtime package - structured concurrency primitives."""

from .scope import Resource, Scope, ScopeState, run_scoped
from .signal import AbortSignal
from .spinner import ConsoleSink, Spinner, use_spinner, with_spinner

__all__ = [
    "AbortSignal",
    "ConsoleSink",
    "Resource",
    "Scope",
    "ScopeState",
    "Spinner",
    "run_scoped",
    "use_spinner",
    "with_spinner",
]
