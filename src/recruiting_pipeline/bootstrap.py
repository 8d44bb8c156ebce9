"""
Wiring of repositories, engines, and the workflow orchestrator.

The transition engine and the scheduler share one lock registry, one retry
policy, and one clock so their critical sections and timestamps agree.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recruiting_pipeline.config import Settings, get_settings
from recruiting_pipeline.db.repository import (
    ApplicationRepository,
    AuditRepository,
    InMemoryApplicationRepository,
    InMemoryAuditRepository,
    InMemoryInterviewRepository,
    InterviewRepository,
    SqlApplicationRepository,
    SqlAuditRepository,
    SqlInterviewRepository,
)
from recruiting_pipeline.directory import (
    CandidateDirectory,
    DocumentAttachmentService,
    InMemoryCandidateDirectory,
    InMemoryDocumentStore,
    InMemoryJobDirectory,
    JobDirectory,
)
from recruiting_pipeline.pipeline.faults import FaultInjector, build_fault_injector
from recruiting_pipeline.pipeline.locks import KeyedLock
from recruiting_pipeline.pipeline.retry import RetryPolicy
from recruiting_pipeline.pipeline.scheduler import InterviewScheduler
from recruiting_pipeline.pipeline.schemas import (
    ApplicationRecord,
    CandidateSnapshot,
    InterviewRecord,
    JobSnapshot,
)
from recruiting_pipeline.pipeline.transitions import StageTransitionEngine
from recruiting_pipeline.pipeline.workflow import WorkflowOrchestrator

logger = logging.getLogger(__name__)


def build_orchestrator(
    applications: ApplicationRepository,
    interviews: InterviewRepository,
    audit: AuditRepository,
    candidates: CandidateDirectory,
    jobs: JobDirectory,
    documents: DocumentAttachmentService | None = None,
    settings: Settings | None = None,
    retry: RetryPolicy | None = None,
    clock: Callable[[], datetime] | None = None,
) -> WorkflowOrchestrator:
    """
    Assemble a workflow orchestrator over the given storage.

    Args:
        applications: Application storage.
        interviews: Interview storage.
        audit: Audit trail storage.
        candidates: Candidate lookup.
        jobs: Job lookup.
        documents: Document collaborator.
        settings: Settings. Loaded if None.
        retry: Retry policy shared by every component. Built from settings if None.
        clock: Shared source of the current time (UTC).

    Returns:
        A ready orchestrator.
    """
    settings = settings or get_settings()
    retry = retry or RetryPolicy.from_settings(settings)
    locks = KeyedLock(timeout=settings.lock_timeout)

    transitions = StageTransitionEngine(applications, audit, retry=retry, locks=locks, clock=clock)
    scheduler = InterviewScheduler(
        interviews,
        audit,
        transitions,
        retry=retry,
        locks=locks,
        clock=clock,
        settings=settings,
        candidates=candidates,
        jobs=jobs,
    )
    return WorkflowOrchestrator(
        transitions,
        scheduler,
        candidates,
        jobs,
        documents=documents,
        settings=settings,
    )


def build_in_memory_orchestrator(
    applications: list[ApplicationRecord] | None = None,
    interviews: list[InterviewRecord] | None = None,
    candidates: list[CandidateSnapshot] | None = None,
    jobs: list[JobSnapshot] | None = None,
    faults: FaultInjector | None = None,
    settings: Settings | None = None,
    retry: RetryPolicy | None = None,
    clock: Callable[[], datetime] | None = None,
) -> WorkflowOrchestrator:
    """
    Assemble an orchestrator over in-memory storage.

    Faults default to whatever fault_injection_rate configures (none unless set).
    """
    settings = settings or get_settings()
    faults = faults or build_fault_injector(settings.fault_injection_rate, settings.fault_injection_seed)
    logger.debug(
        f"Building in-memory orchestrator with {len(applications or [])} applications "
        f"and {len(interviews or [])} interviews"
    )
    return build_orchestrator(
        InMemoryApplicationRepository(applications, faults=faults),
        InMemoryInterviewRepository(interviews, faults=faults),
        InMemoryAuditRepository(faults=faults),
        InMemoryCandidateDirectory(candidates),
        InMemoryJobDirectory(jobs),
        documents=InMemoryDocumentStore(),
        settings=settings,
        retry=retry,
        clock=clock,
    )


def build_sql_orchestrator(
    session_factory: async_sessionmaker[AsyncSession],
    candidates: CandidateDirectory,
    jobs: JobDirectory,
    documents: DocumentAttachmentService | None = None,
    settings: Settings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> WorkflowOrchestrator:
    """Assemble an orchestrator over the SQLAlchemy repositories."""
    return build_orchestrator(
        SqlApplicationRepository(session_factory),
        SqlInterviewRepository(session_factory),
        SqlAuditRepository(session_factory),
        candidates,
        jobs,
        documents=documents,
        settings=settings,
        clock=clock,
    )
