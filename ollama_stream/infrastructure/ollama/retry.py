"""
Ollama retry logic - Infrastructure component for handling request failures.
Implements exponential backoff with jitter around opening a chat stream.
"""

from __future__ import annotations
import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx

from ...domain.errors import BackendError
from ..config.settings import DEFAULT_STATUS_CODES, RetrySettings

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.1
    # HTTP 5xx server errors, 408 timeout, 429 rate limit
    retryable_status_codes: List[int] = field(default_factory=lambda: list(DEFAULT_STATUS_CODES))

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryConfig:
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.backoff_base,
            max_delay=settings.max_delay,
            jitter=settings.jitter_max,
            retryable_status_codes=settings.status_codes,
        )


class RetryPolicy:
    """Retries an async operation on transient failures."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self._config = config or RetryConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute operation with exponential backoff retry logic."""
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not self._should_retry(e, attempt):
                    if attempt:
                        self._logger.error(f"Final attempt {attempt + 1} failed: {e}")
                    raise
                delay = self.compute_delay(attempt)
                self._logger.debug(f"Attempt {attempt + 1} failed: {e}; retrying in {delay:.2f}s...")
                await self._sleep(delay)
                attempt += 1

    def compute_delay(self, attempt: int) -> float:
        delay = min(self._config.base_delay * (2 ** attempt), self._config.max_delay)
        # Add jitter to prevent thundering herd
        return delay + random.uniform(0, self._config.jitter * delay)

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if the exception warrants a retry."""
        if attempt >= self._config.max_retries:
            return False

        code = self._extract_status_code(exception)
        if code is not None:
            return code in self._config.retryable_status_codes

        return isinstance(exception, (httpx.TransportError, ConnectionError, TimeoutError))

    def _extract_status_code(self, exception: Exception) -> Optional[int]:
        """Extract HTTP status code from exception if available."""
        if isinstance(exception, BackendError):
            return exception.status_code
        if isinstance(exception, httpx.HTTPStatusError):
            return exception.response.status_code
        return None

    def get_retry_statistics(self) -> Dict[str, Any]:
        """Get the active retry settings (for diagnostics)."""
        return {
            "max_retries": self._config.max_retries,
            "base_delay": self._config.base_delay,
            "max_delay": self._config.max_delay,
            "jitter": self._config.jitter,
            "retryable_status_codes": self._config.retryable_status_codes,
        }
