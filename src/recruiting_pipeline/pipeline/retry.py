"""
Bounded timeout and retry for repository calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from recruiting_pipeline.config import Settings, get_settings
from recruiting_pipeline.pipeline.errors import (
    DependencyFailure,
    DependencyFailureError,
    RepositoryError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Timeout, retry count, and backoff applied to each repository call."""

    def __init__(
        self,
        max_retries: int = 2,
        timeout: float | None = 5.0,
        backoff: float = 0.2,
    ) -> None:
        """
        Initialize the retry policy.

        Args:
            max_retries: Retries after the first attempt.
            timeout: Seconds allowed per attempt (None for no limit).
            backoff: Base delay in seconds, doubled on every retry.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.timeout = timeout
        self.backoff = backoff

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        """Build the policy from the repository settings."""
        settings = settings or get_settings()
        return cls(
            max_retries=settings.repository_max_retries,
            timeout=settings.repository_timeout,
            backoff=settings.repository_retry_backoff,
        )

    async def call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """
        Run a repository call with timeout and bounded retries.

        Args:
            operation: Name used in logs and in the failure.
            func: Zero-argument coroutine factory, invoked once per attempt.

        Returns:
            The call's result.

        Raises:
            DependencyFailureError: If every attempt failed or timed out.
        """
        last_error: Exception | None = None
        attempts = 0

        while attempts <= self.max_retries:
            attempts += 1
            try:
                return await asyncio.wait_for(func(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{operation} timed out after {self.timeout}s (attempt {attempts})")
                last_error = RepositoryError(f"timed out after {self.timeout}s", operation=operation)
            except RepositoryError as e:
                logger.warning(f"{operation} failed (attempt {attempts}): {e}")
                last_error = e

            if attempts <= self.max_retries and self.backoff:
                await asyncio.sleep(self.backoff * 2 ** (attempts - 1))

        # All retries exhausted
        logger.error(f"{operation} failed after {attempts} attempt(s): {last_error}")
        raise DependencyFailureError(
            DependencyFailure(operation=operation, attempts=attempts, detail=str(last_error))
        )
