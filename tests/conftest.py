"""
Shared fixtures for pipeline tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from recruiting_pipeline.bootstrap import build_in_memory_orchestrator
from recruiting_pipeline.config import Settings
from recruiting_pipeline.pipeline.faults import ScriptedFaultInjector
from recruiting_pipeline.pipeline.retry import RetryPolicy
from recruiting_pipeline.pipeline.schemas import (
    ApplicationRecord,
    CandidateSnapshot,
    JobSnapshot,
    Stage,
)
from recruiting_pipeline.pipeline.workflow import WorkflowOrchestrator

START = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock starting at a fixed Monday morning."""
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Create settings that don't depend on the environment."""
    return Settings(
        repository_timeout=1.0,
        repository_max_retries=2,
        repository_retry_backoff=0.0,
        lock_timeout=2.0,
        fault_injection_rate=0.0,
    )


@pytest.fixture
def retry() -> RetryPolicy:
    """Create a retry policy without backoff delays."""
    return RetryPolicy(max_retries=2, timeout=1.0, backoff=0.0)


@pytest.fixture
def faults() -> ScriptedFaultInjector:
    """Create a fault injector with nothing queued."""
    return ScriptedFaultInjector()


@pytest.fixture
def candidates() -> list[CandidateSnapshot]:
    """Create sample candidates."""
    return [
        CandidateSnapshot(
            id="cand-1",
            name="Ahmed Khan",
            email="ahmed.khan@example.com",
            phone="+971501234567",
            passport_number="P1234567",
        ),
        CandidateSnapshot(
            id="cand-2",
            name="Maria Santos",
            email="maria.santos@example.com",
            phone="+639171234567",
            passport_number="EC7654321",
        ),
        CandidateSnapshot(
            id="cand-3",
            name="Rajesh Kumar",
            email="rajesh.k@example.com",
            phone="+919812345678",
            passport_number="Z9988776",
        ),
    ]


@pytest.fixture
def jobs() -> list[JobSnapshot]:
    """Create sample jobs."""
    return [
        JobSnapshot(id="job-1", title="Electrician", company="Gulf Builders"),
        JobSnapshot(id="job-2", title="Staff Nurse", company="City Hospital"),
    ]


@pytest.fixture
def applications() -> list[ApplicationRecord]:
    """Create sample applications spread across stages."""
    return [
        ApplicationRecord(
            id="app-1",
            candidate_id="cand-1",
            job_id="job-1",
            applied_at=START - timedelta(days=10),
        ),
        ApplicationRecord(
            id="app-2",
            candidate_id="cand-2",
            job_id="job-2",
            stage=Stage.SHORTLISTED,
            applied_at=START - timedelta(days=9),
            shortlisted_at=START - timedelta(days=8),
        ),
        ApplicationRecord(
            id="app-3",
            candidate_id="cand-3",
            job_id="job-1",
            applied_at=START - timedelta(days=8),
        ),
    ]


@pytest.fixture
def orchestrator(
    applications: list[ApplicationRecord],
    candidates: list[CandidateSnapshot],
    jobs: list[JobSnapshot],
    faults: ScriptedFaultInjector,
    settings: Settings,
    retry: RetryPolicy,
    clock: FakeClock,
) -> WorkflowOrchestrator:
    """Create an in-memory orchestrator over the sample data."""
    return build_in_memory_orchestrator(
        applications=applications,
        candidates=candidates,
        jobs=jobs,
        faults=faults,
        settings=settings,
        retry=retry,
        clock=clock,
    )
