"""
Per-key critical sections.

Writes for one candidate or one application are serialized through a lock
keyed by its identifier; writes for different keys proceed concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from recruiting_pipeline.pipeline.errors import DependencyFailure, DependencyFailureError

logger = logging.getLogger(__name__)


class KeyedLock:
    """A registry of asyncio locks, one per key, dropped when unused."""

    def __init__(self, timeout: float | None = None) -> None:
        """
        Initialize the lock registry.

        Args:
            timeout: Maximum seconds to wait for a key (None waits forever).
        """
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def is_locked(self, key: str) -> bool:
        """Check whether a key is currently held."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        Hold the critical section for a key.

        Raises:
            DependencyFailureError: If the key is not acquired within the timeout.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.error(f"Timed out after {self._timeout}s waiting for lock {key}")
                raise DependencyFailureError(
                    DependencyFailure(
                        operation="lock",
                        attempts=1,
                        detail=f"timed out waiting for {key}",
                    )
                ) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)
