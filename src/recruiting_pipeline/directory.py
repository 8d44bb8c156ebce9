"""
External collaborators consumed by the pipeline.

Candidate and job lookups return read-only snapshots used for display and
search. The document collaborator receives attachments fire-and-forget.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from recruiting_pipeline.pipeline.schemas import CandidateSnapshot, JobSnapshot

logger = logging.getLogger(__name__)


class CandidateDirectory(ABC):
    """Lookup of candidate snapshots by id."""

    @abstractmethod
    async def get_many(self, candidate_ids: set[str]) -> dict[str, CandidateSnapshot]:
        """
        Look up several candidates at once.

        Args:
            candidate_ids: Candidate identifiers to resolve.

        Returns:
            Snapshots keyed by id; unknown ids are omitted.
        """
        ...


class JobDirectory(ABC):
    """Lookup of job snapshots by id."""

    @abstractmethod
    async def get_many(self, job_ids: set[str]) -> dict[str, JobSnapshot]:
        """Look up several jobs at once; unknown ids are omitted."""
        ...


class DocumentAttachmentService(ABC):
    """Receives documents attached to a candidate's file."""

    @abstractmethod
    async def attach(self, candidate_id: str, document: dict[str, Any]) -> None:
        """
        Attach document metadata to a candidate. Must be idempotent.

        Args:
            candidate_id: Candidate the document belongs to.
            document: Document metadata (name, stage, uploaded_at, ...).
        """
        ...


class InMemoryCandidateDirectory(CandidateDirectory):
    """Candidate lookup over a fixed list of snapshots."""

    def __init__(self, candidates: list[CandidateSnapshot] | None = None) -> None:
        self._candidates = {c.id: c for c in candidates or []}

    async def get_many(self, candidate_ids: set[str]) -> dict[str, CandidateSnapshot]:
        return {cid: self._candidates[cid] for cid in candidate_ids if cid in self._candidates}


class InMemoryJobDirectory(JobDirectory):
    """Job lookup over a fixed list of snapshots."""

    def __init__(self, jobs: list[JobSnapshot] | None = None) -> None:
        self._jobs = {j.id: j for j in jobs or []}

    async def get_many(self, job_ids: set[str]) -> dict[str, JobSnapshot]:
        return {jid: self._jobs[jid] for jid in job_ids if jid in self._jobs}


class InMemoryDocumentStore(DocumentAttachmentService):
    """Keeps attached document metadata per candidate, ignoring duplicates."""

    def __init__(self) -> None:
        self.documents: dict[str, list[dict[str, Any]]] = {}

    async def attach(self, candidate_id: str, document: dict[str, Any]) -> None:
        existing = self.documents.setdefault(candidate_id, [])
        if document not in existing:
            existing.append(dict(document))
            logger.debug(f"Attached document {document.get('name', '')!r} to candidate {candidate_id}")
