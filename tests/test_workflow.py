"""
Tests for the workflow orchestrator views.
"""

import logging
from typing import Any

import pytest

from recruiting_pipeline.bootstrap import build_orchestrator
from recruiting_pipeline.config import Settings
from recruiting_pipeline.db.repository import (
    InMemoryApplicationRepository,
    InMemoryAuditRepository,
    InMemoryInterviewRepository,
)
from recruiting_pipeline.directory import (
    DocumentAttachmentService,
    InMemoryCandidateDirectory,
    InMemoryDocumentStore,
    InMemoryJobDirectory,
)
from recruiting_pipeline.pipeline.schemas import ApplicationRecord, CandidateSnapshot, JobSnapshot, Stage
from recruiting_pipeline.pipeline.workflow import (
    CandidateRow,
    JobGroup,
    ViewMode,
    WorkflowOrchestrator,
    WorkflowView,
    paginate,
)


class FailingDocuments(DocumentAttachmentService):
    async def attach(self, candidate_id: str, document: dict[str, Any]) -> None:
        raise RuntimeError("document store offline")


class TestPaginate:
    """Tests for the page slice."""

    def test_slices(self) -> None:
        items = list(range(25))

        assert paginate(items, 1, 12) == list(range(12))
        assert paginate(items, 3, 12) == [24]
        assert paginate(items, 4, 12) == []


class TestListByStage:
    """Tests for the by-job view."""

    @pytest.mark.asyncio
    async def test_groups_by_job(self, orchestrator: WorkflowOrchestrator) -> None:
        """Applications are grouped per job, newest first."""
        page = await orchestrator.list_by_stage()

        assert page.total_items == 2
        assert [g.job_id for g in page.items] == ["job-1", "job-2"]
        assert [r.application.id for r in page.items[0].rows] == ["app-3", "app-1"]
        assert page.items[0].job.title == "Electrician"

    @pytest.mark.asyncio
    async def test_paginates_groups(self, orchestrator: WorkflowOrchestrator) -> None:
        """Pagination counts job groups, not applications."""
        first = await orchestrator.list_by_stage(page=1, page_size=1)
        second = await orchestrator.list_by_stage(page=2, page_size=1)

        assert first.total_pages == 2
        assert [g.job_id for g in first.items] == ["job-1"]
        assert len(first.items[0].rows) == 2
        assert [g.job_id for g in second.items] == ["job-2"]

    @pytest.mark.asyncio
    async def test_stage_filter(self, orchestrator: WorkflowOrchestrator) -> None:
        page = await orchestrator.list_by_stage("shortlisted")

        assert [g.job_id for g in page.items] == ["job-2"]
        assert [r.application.id for r in page.items[0].rows] == ["app-2"]

    @pytest.mark.asyncio
    async def test_all_means_no_filter(self, orchestrator: WorkflowOrchestrator) -> None:
        page = await orchestrator.list_by_stage("all")

        assert page.total_items == 2

    @pytest.mark.asyncio
    async def test_unknown_stage_raises(self, orchestrator: WorkflowOrchestrator) -> None:
        with pytest.raises(ValueError):
            await orchestrator.list_by_stage("hired")


class TestSearchCandidates:
    """Tests for the by-candidate view."""

    @pytest.mark.asyncio
    async def test_paginates_rows(self, orchestrator: WorkflowOrchestrator) -> None:
        """Pagination counts individual applications."""
        first = await orchestrator.search_candidates(page=1, page_size=2)
        second = await orchestrator.search_candidates(page=2, page_size=2)

        assert first.total_items == 3
        assert first.total_pages == 2
        assert [r.application.id for r in first.items] == ["app-3", "app-2"]
        assert [r.application.id for r in second.items] == ["app-1"]

    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("SANTOS", ["app-2"]),
            ("p1234567", ["app-1"]),
            ("+63917", ["app-2"]),
            ("rajesh.k@", ["app-3"]),
            ("nurse", ["app-2"]),
            ("electrician", ["app-3", "app-1"]),
            ("example.com", ["app-3", "app-2", "app-1"]),
            ("nobody", []),
        ],
    )
    @pytest.mark.asyncio
    async def test_search_fields(
        self,
        orchestrator: WorkflowOrchestrator,
        query: str,
        expected: list[str],
    ) -> None:
        """Search matches phone, passport, name, email, and job title."""
        page = await orchestrator.search_candidates(query)

        assert [r.application.id for r in page.items] == expected

    @pytest.mark.asyncio
    async def test_search_with_stage(self, orchestrator: WorkflowOrchestrator) -> None:
        page = await orchestrator.search_candidates("example.com", stage=Stage.APPLIED)

        assert [r.application.id for r in page.items] == ["app-3", "app-1"]


class TestWorkflowView:
    """Tests for view state."""

    @pytest.fixture
    def view(self) -> WorkflowView:
        view = WorkflowView(page_size=1)
        view.set_page(3)
        return view

    def test_defaults(self) -> None:
        view = WorkflowView()

        assert view.mode == ViewMode.BY_JOB
        assert view.stage is None
        assert view.page == 1
        assert view.page_size == 12

    def test_stage_change_resets_page(self, view: WorkflowView) -> None:
        view.set_stage("visa-approved")

        assert view.stage == Stage.VISA_APPROVED
        assert view.page == 1

    def test_mode_change_resets_page(self, view: WorkflowView) -> None:
        view.set_mode("by-candidate")

        assert view.mode == ViewMode.BY_CANDIDATE
        assert view.page == 1

    def test_search_change_resets_page(self, view: WorkflowView) -> None:
        view.set_search("nurse")

        assert view.page == 1

    def test_page_never_below_one(self, view: WorkflowView) -> None:
        view.set_page(0)

        assert view.page == 1

    @pytest.mark.asyncio
    async def test_current_page(self, orchestrator: WorkflowOrchestrator) -> None:
        """The view renders groups by job or rows by candidate."""
        view = WorkflowView(page_size=5)

        by_job = await orchestrator.current_page(view)
        view.set_mode(ViewMode.BY_CANDIDATE)
        view.set_search("santos")
        by_candidate = await orchestrator.current_page(view)

        assert all(isinstance(item, JobGroup) for item in by_job.items)
        assert all(isinstance(item, CandidateRow) for item in by_candidate.items)
        assert [r.application.id for r in by_candidate.items] == ["app-2"]


class TestAttachDocument:
    """Tests for fire-and-forget document attachment."""

    def _build(self, documents: DocumentAttachmentService, settings: Settings) -> WorkflowOrchestrator:
        return build_orchestrator(
            InMemoryApplicationRepository([ApplicationRecord(id="app-1", candidate_id="cand-1", job_id="job-1")]),
            InMemoryInterviewRepository(),
            InMemoryAuditRepository(),
            InMemoryCandidateDirectory([CandidateSnapshot(id="cand-1", name="Ahmed Khan")]),
            InMemoryJobDirectory([JobSnapshot(id="job-1", title="Electrician")]),
            documents=documents,
            settings=settings,
        )

    @pytest.mark.asyncio
    async def test_attach_is_idempotent(self, settings: Settings) -> None:
        store = InMemoryDocumentStore()
        orchestrator = self._build(store, settings)
        document = {"name": "passport.pdf", "stage": "applied"}

        orchestrator.attach_document("cand-1", document)
        orchestrator.attach_document("cand-1", document)
        await orchestrator.drain()

        assert store.documents == {"cand-1": [document]}

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, settings: Settings, caplog: pytest.LogCaptureFixture) -> None:
        """A failing document service never raises to the caller."""
        orchestrator = self._build(FailingDocuments(), settings)

        with caplog.at_level(logging.ERROR):
            orchestrator.attach_document("cand-1", {"name": "medical.pdf"})
            await orchestrator.drain()

        assert "document store offline" in caplog.text
