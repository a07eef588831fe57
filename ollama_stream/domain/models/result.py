"""
Result type for the error-as-value pattern.

Fallible operations whose failure the caller is expected to handle locally
(tool execution, schema validation, structured-output parsing) return a
``Result`` instead of raising.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]


def ok(value: T) -> Ok[T]:
    return Ok(value)


def err(error: E) -> Err[E]:
    return Err(error)


def is_ok(result: Result[T, E]) -> bool:
    return isinstance(result, Ok)


def is_err(result: Result[T, E]) -> bool:
    return isinstance(result, Err)


def unwrap(result: Result[T, E]) -> T:
    """Return the value or raise the error.

    Errors that are not exceptions are wrapped in a ``ValueError``.
    """
    if isinstance(result, Ok):
        return result.value
    if isinstance(result.error, BaseException):
        raise result.error
    raise ValueError(f"unwrap() called on Err: {result.error!r}")


def unwrap_or(result: Result[T, E], default: T) -> T:
    return result.value if isinstance(result, Ok) else default


def map_ok(result: Result[T, E], fn: Callable[[T], U]) -> Result[U, E]:
    return Ok(fn(result.value)) if isinstance(result, Ok) else result


def map_err(result: Result[T, E], fn: Callable[[E], F]) -> Result[T, F]:
    return Err(fn(result.error)) if isinstance(result, Err) else result
