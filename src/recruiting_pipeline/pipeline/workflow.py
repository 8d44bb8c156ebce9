"""
Workflow orchestrator.

Presents the application set grouped by job or as a flat candidate list,
applies stage filters, search and pagination, and routes user actions to
the stage transition engine and the interview scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from recruiting_pipeline.config import Settings, get_settings
from recruiting_pipeline.pipeline.analytics import (
    AnalyticsAggregator,
    InterviewStatistics,
    PipelineAnalytics,
)
from recruiting_pipeline.pipeline.errors import BulkOutcome, ConflictError, InvalidTransition
from recruiting_pipeline.pipeline.scheduler import InterviewScheduler
from recruiting_pipeline.pipeline.schemas import (
    ApplicationRecord,
    CandidateSnapshot,
    InterviewLocation,
    InterviewOutcome,
    InterviewRecord,
    JobSnapshot,
    Page,
    ScheduleRequest,
    Stage,
    TimeSlot,
)
from recruiting_pipeline.pipeline.transitions import StageTransitionEngine

if TYPE_CHECKING:
    from recruiting_pipeline.directory import (
        CandidateDirectory,
        DocumentAttachmentService,
        JobDirectory,
    )

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    """How the workflow listing is presented."""

    BY_JOB = "by-job"
    BY_CANDIDATE = "by-candidate"


class CandidateRow(BaseModel):
    """An application decorated with candidate and job details."""

    application: ApplicationRecord
    candidate: CandidateSnapshot | None = None
    job: JobSnapshot | None = None


class JobGroup(BaseModel):
    """The listed applications for one job."""

    job_id: str
    job: JobSnapshot | None = None
    rows: list[CandidateRow] = Field(default_factory=list)


def paginate(items: Sequence[Any], page: int, page_size: int) -> list[Any]:
    """Slice [(page-1)*page_size, page*page_size)."""
    return list(items[(page - 1) * page_size : page * page_size])


def matches_search(row: CandidateRow, term: str) -> bool:
    """Case-insensitive substring match on phone, passport, name, email, or job title."""
    needle = term.strip().lower()
    if not needle:
        return True
    fields: list[str] = []
    if row.candidate is not None:
        c = row.candidate
        fields.extend([c.phone, c.passport_number, c.name, c.email])
    if row.job is not None:
        fields.append(row.job.title)
    return any(needle in (value or "").lower() for value in fields)


class WorkflowView:
    """
    Mutable listing state for one user session.

    Changing the mode, the stage filter, or the search term goes back to
    page 1.
    """

    def __init__(self, page_size: int | None = None) -> None:
        self._mode = ViewMode.BY_JOB
        self._stage: Stage | None = None
        self._search = ""
        self._page = 1
        self._page_size = page_size or get_settings().default_page_size

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def stage(self) -> Stage | None:
        return self._stage

    @property
    def search(self) -> str:
        return self._search

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    def set_mode(self, mode: ViewMode | str) -> None:
        self._mode = ViewMode(mode)
        self._page = 1

    def set_stage(self, stage: Stage | str | None) -> None:
        """Filter by stage; None or "all" clears the filter."""
        self._stage = None if stage in (None, "", "all") else Stage.parse(stage)
        self._page = 1

    def set_search(self, term: str) -> None:
        self._search = term or ""
        self._page = 1

    def set_page(self, page: int) -> None:
        self._page = max(1, page)


class WorkflowOrchestrator:
    """
    Entry point for the UI, CLI, or API layer.

    Reads go straight to storage without locking. Writes are delegated to the
    transition engine and the scheduler, which serialize them per key.
    """

    def __init__(
        self,
        transitions: StageTransitionEngine,
        scheduler: InterviewScheduler,
        candidates: CandidateDirectory,
        jobs: JobDirectory,
        documents: DocumentAttachmentService | None = None,
        analytics: AnalyticsAggregator | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            transitions: Stage transition engine.
            scheduler: Interview scheduler.
            candidates: Candidate lookup used for display and search.
            jobs: Job lookup used for display and search.
            documents: Document collaborator for attachments.
            analytics: Aggregator. Created if None.
            settings: Settings. Loaded if None.
        """
        self._transitions = transitions
        self._scheduler = scheduler
        self._candidates = candidates
        self._jobs = jobs
        self._documents = documents
        self._analytics = analytics or AnalyticsAggregator()
        self._settings = settings or get_settings()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def transitions(self) -> StageTransitionEngine:
        return self._transitions

    @property
    def scheduler(self) -> InterviewScheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Interview operations
    # ------------------------------------------------------------------

    async def schedule_interview(
        self,
        candidate_id: str,
        job_id: str,
        scheduled_at: datetime,
        duration_minutes: int | None = None,
        interviewer: str = "",
        location: InterviewLocation | str = InterviewLocation.OFFICE,
    ) -> InterviewRecord | ConflictError:
        return await self._scheduler.schedule(
            candidate_id,
            job_id,
            scheduled_at,
            duration_minutes=duration_minutes,
            interviewer=interviewer,
            location=location,
        )

    async def reschedule_interview(
        self,
        interview_id: str,
        new_scheduled_at: datetime,
        duration_minutes: int | None = None,
    ) -> InterviewRecord | ConflictError | InvalidTransition:
        return await self._scheduler.reschedule(interview_id, new_scheduled_at, duration_minutes)

    async def cancel_interview(self, interview_id: str, reason: str = "") -> InterviewRecord | InvalidTransition:
        return await self._scheduler.cancel(interview_id, reason)

    async def complete_interview(
        self,
        interview_id: str,
        outcome: InterviewOutcome | str = InterviewOutcome.PASSED,
        notes: str = "",
    ) -> InterviewRecord | InvalidTransition:
        return await self._scheduler.complete(interview_id, outcome, notes)

    async def mark_no_show(self, interview_id: str, notes: str = "") -> InterviewRecord | InvalidTransition:
        return await self._scheduler.mark_no_show(interview_id, notes)

    async def bulk_schedule_interviews(
        self,
        requests: Sequence[ScheduleRequest],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BulkOutcome[InterviewRecord]]:
        return await self._scheduler.bulk_schedule(requests, cancel_event=cancel_event)

    async def available_slots(self, day: date, interviewer: str | None = None) -> list[TimeSlot]:
        return await self._scheduler.available_slots(day, interviewer)

    # ------------------------------------------------------------------
    # Stage operations
    # ------------------------------------------------------------------

    async def transition_stage(
        self,
        application_id: str,
        target_stage: Stage | str,
        notes: str | None = None,
    ) -> ApplicationRecord | InvalidTransition:
        return await self._transitions.transition(application_id, target_stage, notes=notes)

    async def bulk_transition_stage(
        self,
        application_ids: Sequence[str],
        target_stage: Stage | str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BulkOutcome[ApplicationRecord]]:
        return await self._transitions.bulk_transition(application_ids, target_stage, cancel_event=cancel_event)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_analytics(self) -> PipelineAnalytics:
        """Pipeline analytics over every application, regardless of any view filter."""
        return self._analytics.aggregate(await self._transitions.list_all())

    async def get_interview_statistics(self) -> InterviewStatistics:
        """Interview statistics over every interview."""
        return self._analytics.interview_statistics(await self._scheduler.list_interviews())

    async def list_by_stage(
        self,
        stage: Stage | str | None = None,
        page: int = 1,
        page_size: int | None = None,
        search: str = "",
    ) -> Page[JobGroup]:
        """
        List applications grouped by job.

        Pagination counts job groups, not applications.

        Args:
            stage: Stage filter; None or "all" lists every stage.
            page: 1-based page number.
            page_size: Job groups per page.
            search: Optional search term applied before grouping.

        Returns:
            A page of job groups.
        """
        page_size = page_size or self._settings.default_page_size
        rows = await self._rows(stage, search)

        groups: dict[str, JobGroup] = {}
        for row in rows:
            job_id = row.application.job_id
            if job_id not in groups:
                groups[job_id] = JobGroup(job_id=job_id, job=row.job)
            groups[job_id].rows.append(row)

        ordered = list(groups.values())
        page = max(1, page)
        return Page[JobGroup](
            items=paginate(ordered, page, page_size),
            page=page,
            page_size=page_size,
            total_items=len(ordered),
        )

    async def search_candidates(
        self,
        query: str = "",
        page: int = 1,
        page_size: int | None = None,
        stage: Stage | str | None = None,
    ) -> Page[CandidateRow]:
        """
        Search applications as a flat candidate list.

        Pagination counts individual applications.

        Args:
            query: Case-insensitive substring of phone, passport number, name,
                email, or job title. Empty matches everything.
            page: 1-based page number.
            page_size: Rows per page.
            stage: Optional stage filter.

        Returns:
            A page of candidate rows.
        """
        page_size = page_size or self._settings.default_page_size
        rows = await self._rows(stage, query)
        page = max(1, page)
        return Page[CandidateRow](
            items=paginate(rows, page, page_size),
            page=page,
            page_size=page_size,
            total_items=len(rows),
        )

    async def current_page(self, view: WorkflowView) -> Page[JobGroup] | Page[CandidateRow]:
        """Render the page a view currently points at."""
        if view.mode is ViewMode.BY_JOB:
            return await self.list_by_stage(view.stage, view.page, view.page_size, search=view.search)
        return await self.search_candidates(view.search, view.page, view.page_size, stage=view.stage)

    async def _rows(self, stage: Stage | str | None, search: str) -> list[CandidateRow]:
        wanted = None if stage in (None, "", "all") else Stage.parse(stage)
        records = await self._transitions.list_all()
        if wanted is not None:
            records = [r for r in records if r.stage is wanted]
        records.sort(key=lambda r: (r.applied_at, r.id), reverse=True)

        candidates = await self._candidates.get_many({r.candidate_id for r in records})
        jobs = await self._jobs.get_many({r.job_id for r in records})
        rows = [
            CandidateRow(application=r, candidate=candidates.get(r.candidate_id), job=jobs.get(r.job_id))
            for r in records
        ]
        return [row for row in rows if matches_search(row, search)]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def attach_document(self, candidate_id: str, document: dict[str, Any]) -> None:
        """
        Hand a document to the document collaborator without waiting for it.

        Failures are logged, never raised to the caller.
        """
        if self._documents is None:
            logger.warning(f"No document service configured; dropping document for {candidate_id}")
            return

        task = asyncio.create_task(self._documents.attach(candidate_id, document))
        self._pending.add(task)
        task.add_done_callback(self._on_attached)

    def _on_attached(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Document attachment failed: {error}")

    async def drain(self) -> None:
        """Wait for in-flight document attachments."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
