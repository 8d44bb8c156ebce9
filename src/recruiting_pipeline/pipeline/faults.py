"""
Fault injection strategies for repositories.

Used to exercise retry handling in demos and tests. Production wiring uses
NoFaults.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod

from recruiting_pipeline.pipeline.errors import RepositoryError

logger = logging.getLogger(__name__)


class FaultInjector(ABC):
    """Decides whether a repository call should fail."""

    @abstractmethod
    async def maybe_fail(self, operation: str) -> None:
        """
        Raise RepositoryError if this call should fail.

        Args:
            operation: Name of the repository operation being attempted.
        """
        ...


class NoFaults(FaultInjector):
    """Never fails."""

    async def maybe_fail(self, operation: str) -> None:
        return None


class RandomFaultInjector(FaultInjector):
    """Fails each call with a fixed probability, from a seedable generator."""

    def __init__(self, rate: float, seed: int | None = None) -> None:
        if not 0.0 <= rate <= 1.0:
            raise ValueError("rate must be between 0 and 1")
        self._rate = rate
        self._rng = random.Random(seed)

    async def maybe_fail(self, operation: str) -> None:
        if self._rate and self._rng.random() < self._rate:
            logger.debug(f"Injected fault in {operation}")
            raise RepositoryError(f"Simulated failure in {operation}", operation=operation)


class ScriptedFaultInjector(FaultInjector):
    """Fails the next N calls of named operations, then succeeds."""

    def __init__(self, failures: dict[str, int] | None = None) -> None:
        self._remaining: dict[str, int] = dict(failures or {})
        self.calls: list[str] = []

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Queue failures for an operation."""
        self._remaining[operation] = self._remaining.get(operation, 0) + times

    async def maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if self._remaining.get(operation, 0) > 0:
            self._remaining[operation] -= 1
            raise RepositoryError(f"Scripted failure in {operation}", operation=operation)


def build_fault_injector(rate: float, seed: int | None = None) -> FaultInjector:
    """Return NoFaults unless a positive rate is configured."""
    if rate <= 0:
        return NoFaults()
    logger.warning(f"Fault injection enabled at rate {rate}")
    return RandomFaultInjector(rate, seed)
