"""
Error taxonomy for the streaming chat engine.

Failures that abort a turn are raised as exceptions. Tool failures and
structured-output parse failures are returned as values (see ``Result``).
"""

from __future__ import annotations
from typing import Optional


class OllamaStreamError(Exception):
    """Base class for all errors raised by the engine."""
    pass


class DecodeError(OllamaStreamError):
    """A line of the NDJSON stream could not be parsed as JSON."""

    def __init__(self, raw: str, cause: Optional[Exception] = None):
        self.raw = raw
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Malformed NDJSON line{detail} (raw={raw[:200]!r})")


class BackendError(OllamaStreamError):
    """Non-success HTTP status, missing body, or an in-band ``error`` field."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class StreamClosedError(OllamaStreamError):
    """A chat stream was pulled after it produced its terminal result."""
    pass


class ToolRegistrationError(OllamaStreamError):
    """Duplicate tool name, or registration while the registry is locked."""
    pass
