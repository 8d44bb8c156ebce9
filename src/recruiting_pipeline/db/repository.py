"""
Repository pattern for pipeline persistence.

Defines the repository interfaces used by the pipeline, an in-memory
implementation for tests and demos, and a SQLAlchemy implementation for
durable storage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recruiting_pipeline.db.models import (
    ApplicationModel,
    AuditEntryModel,
    Base,
    InterviewModel,
)
from recruiting_pipeline.pipeline.faults import FaultInjector, NoFaults
from recruiting_pipeline.pipeline.schemas import (
    ApplicationRecord,
    AuditEntry,
    InterviewRecord,
    ensure_aware,
)


def _utc(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(timezone.utc)


def _utc_or_none(value: datetime | None) -> datetime | None:
    return _utc(value) if value is not None else None


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class ApplicationRepository(ABC):
    """Storage for application records."""

    @abstractmethod
    async def get(self, application_id: str) -> ApplicationRecord | None:
        """
        Get an application by its ID.

        Args:
            application_id: The application's identifier.

        Returns:
            The application if found, None otherwise.
        """
        ...

    @abstractmethod
    async def save(self, record: ApplicationRecord) -> ApplicationRecord:
        """
        Insert or replace an application.

        Args:
            record: The application to store.

        Returns:
            The stored application.
        """
        ...

    @abstractmethod
    async def list_all(self) -> list[ApplicationRecord]:
        """List every application, rejected ones included."""
        ...

    @abstractmethod
    async def find_by_candidate_and_job(
        self,
        candidate_id: str,
        job_id: str,
    ) -> ApplicationRecord | None:
        """Get the application a candidate made to a job, if any."""
        ...


class InterviewRepository(ABC):
    """Storage for interview records."""

    @abstractmethod
    async def get(self, interview_id: str) -> InterviewRecord | None:
        """Get an interview by its ID."""
        ...

    @abstractmethod
    async def save(self, record: InterviewRecord) -> InterviewRecord:
        """Insert or replace an interview."""
        ...

    @abstractmethod
    async def list_by_candidate(self, candidate_id: str) -> list[InterviewRecord]:
        """
        Get all interviews for a candidate.

        Args:
            candidate_id: Candidate identifier.

        Returns:
            Interviews in every status, ordered by start time.
        """
        ...

    @abstractmethod
    async def list_between(self, start: datetime, end: datetime) -> list[InterviewRecord]:
        """Get interviews starting in [start, end), ordered by start time."""
        ...

    @abstractmethod
    async def list_all(self) -> list[InterviewRecord]:
        """List every interview."""
        ...


class AuditRepository(ABC):
    """Append-only storage for audit entries."""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> AuditEntry:
        """Append an audit entry."""
        ...

    @abstractmethod
    async def list_for(self, entity_type: str, entity_id: str) -> list[AuditEntry]:
        """Get the audit trail of one record, oldest first."""
        ...


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryApplicationRepository(ApplicationRepository):
    """Dictionary-backed application storage."""

    def __init__(
        self,
        records: list[ApplicationRecord] | None = None,
        faults: FaultInjector | None = None,
    ) -> None:
        self._records: dict[str, ApplicationRecord] = {
            r.id: r.model_copy(deep=True) for r in records or []
        }
        self._faults = faults or NoFaults()

    async def get(self, application_id: str) -> ApplicationRecord | None:
        await self._faults.maybe_fail("applications.get")
        record = self._records.get(application_id)
        return record.model_copy(deep=True) if record else None

    async def save(self, record: ApplicationRecord) -> ApplicationRecord:
        await self._faults.maybe_fail("applications.save")
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def list_all(self) -> list[ApplicationRecord]:
        await self._faults.maybe_fail("applications.list_all")
        return [r.model_copy(deep=True) for r in self._records.values()]

    async def find_by_candidate_and_job(
        self,
        candidate_id: str,
        job_id: str,
    ) -> ApplicationRecord | None:
        await self._faults.maybe_fail("applications.find_by_candidate_and_job")
        for record in self._records.values():
            if record.candidate_id == candidate_id and record.job_id == job_id:
                return record.model_copy(deep=True)
        return None


class InMemoryInterviewRepository(InterviewRepository):
    """Dictionary-backed interview storage."""

    def __init__(
        self,
        records: list[InterviewRecord] | None = None,
        faults: FaultInjector | None = None,
    ) -> None:
        self._records: dict[str, InterviewRecord] = {
            r.id: r.model_copy(deep=True) for r in records or []
        }
        self._faults = faults or NoFaults()

    def _sorted(self, records: list[InterviewRecord]) -> list[InterviewRecord]:
        return [r.model_copy(deep=True) for r in sorted(records, key=lambda r: (r.scheduled_at, r.id))]

    async def get(self, interview_id: str) -> InterviewRecord | None:
        await self._faults.maybe_fail("interviews.get")
        record = self._records.get(interview_id)
        return record.model_copy(deep=True) if record else None

    async def save(self, record: InterviewRecord) -> InterviewRecord:
        await self._faults.maybe_fail("interviews.save")
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def list_by_candidate(self, candidate_id: str) -> list[InterviewRecord]:
        await self._faults.maybe_fail("interviews.list_by_candidate")
        return self._sorted([r for r in self._records.values() if r.candidate_id == candidate_id])

    async def list_between(self, start: datetime, end: datetime) -> list[InterviewRecord]:
        await self._faults.maybe_fail("interviews.list_between")
        start, end = ensure_aware(start), ensure_aware(end)
        return self._sorted([r for r in self._records.values() if start <= r.scheduled_at < end])

    async def list_all(self) -> list[InterviewRecord]:
        await self._faults.maybe_fail("interviews.list_all")
        return self._sorted(list(self._records.values()))


class InMemoryAuditRepository(AuditRepository):
    """List-backed audit storage."""

    def __init__(self, faults: FaultInjector | None = None) -> None:
        self._entries: list[AuditEntry] = []
        self._faults = faults or NoFaults()

    async def append(self, entry: AuditEntry) -> AuditEntry:
        await self._faults.maybe_fail("audit.append")
        self._entries.append(entry.model_copy(deep=True))
        return entry

    async def list_for(self, entity_type: str, entity_id: str) -> list[AuditEntry]:
        await self._faults.maybe_fail("audit.list_for")
        return [
            e.model_copy(deep=True)
            for e in self._entries
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

M = TypeVar("M", bound=Base)


class SqlRepository(ABC, Generic[M]):
    """Base for SQLAlchemy repositories; each call runs in its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize the repository.

        Args:
            session_factory: Factory for SQLAlchemy async sessions.
        """
        self._session_factory = session_factory

    @property
    @abstractmethod
    def _model_class(self) -> type[M]:
        """Get the model class for this repository."""
        ...

    async def _get_model(self, session: AsyncSession, entity_id: str) -> M | None:
        """Load a model by primary key within a session."""
        return await session.get(self._model_class, entity_id)


class SqlApplicationRepository(SqlRepository[ApplicationModel], ApplicationRepository):
    """Repository for application operations."""

    @property
    def _model_class(self) -> type[ApplicationModel]:
        """Get the model class."""
        return ApplicationModel

    @staticmethod
    def _to_record(model: ApplicationModel) -> ApplicationRecord:
        return ApplicationRecord(
            id=model.id,
            candidate_id=model.candidate_id,
            job_id=model.job_id,
            stage=model.stage,
            applied_at=model.applied_at,
            shortlisted_at=model.shortlisted_at,
            interviewed_at=model.interviewed_at,
            decision_at=model.decision_at,
            notes=model.notes,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: ApplicationModel, record: ApplicationRecord) -> None:
        model.candidate_id = record.candidate_id
        model.job_id = record.job_id
        model.stage = record.stage.value
        model.applied_at = _utc(record.applied_at)
        model.shortlisted_at = _utc_or_none(record.shortlisted_at)
        model.interviewed_at = _utc_or_none(record.interviewed_at)
        model.decision_at = _utc_or_none(record.decision_at)
        model.notes = record.notes
        model.updated_at = _utc_or_none(record.updated_at)

    async def get(self, application_id: str) -> ApplicationRecord | None:
        async with self._session_factory() as session:
            model = await self._get_model(session, application_id)
            return self._to_record(model) if model else None

    async def save(self, record: ApplicationRecord) -> ApplicationRecord:
        async with self._session_factory() as session, session.begin():
            model = await self._get_model(session, record.id)
            if model is None:
                model = ApplicationModel(id=record.id)
                session.add(model)
            self._apply(model, record)
        return record

    async def list_all(self) -> list[ApplicationRecord]:
        async with self._session_factory() as session:
            stmt = select(ApplicationModel).order_by(ApplicationModel.applied_at, ApplicationModel.id)
            result = await session.execute(stmt)
            return [self._to_record(m) for m in result.scalars().all()]

    async def find_by_candidate_and_job(
        self,
        candidate_id: str,
        job_id: str,
    ) -> ApplicationRecord | None:
        async with self._session_factory() as session:
            stmt = (
                select(ApplicationModel)
                .where(ApplicationModel.candidate_id == candidate_id)
                .where(ApplicationModel.job_id == job_id)
                .order_by(ApplicationModel.applied_at)
                .limit(1)
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return self._to_record(model) if model else None


class SqlInterviewRepository(SqlRepository[InterviewModel], InterviewRepository):
    """Repository for interview operations."""

    @property
    def _model_class(self) -> type[InterviewModel]:
        """Get the model class."""
        return InterviewModel

    @staticmethod
    def _to_record(model: InterviewModel) -> InterviewRecord:
        return InterviewRecord(
            id=model.id,
            candidate_id=model.candidate_id,
            job_id=model.job_id,
            scheduled_at=model.scheduled_at,
            duration_minutes=model.duration_minutes,
            interviewer=model.interviewer,
            location=model.location,
            status=model.status,
            result=model.result,
            notes=model.notes,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: InterviewModel, record: InterviewRecord) -> None:
        model.candidate_id = record.candidate_id
        model.job_id = record.job_id
        model.scheduled_at = _utc(record.scheduled_at)
        model.duration_minutes = record.duration_minutes
        model.interviewer = record.interviewer
        model.location = record.location.value
        model.status = record.status.value
        model.result = record.result.value if record.result else None
        model.notes = record.notes
        model.created_at = _utc(record.created_at)
        model.updated_at = _utc(record.updated_at)

    async def _select(self, *criteria) -> list[InterviewRecord]:
        async with self._session_factory() as session:
            stmt = select(InterviewModel).order_by(InterviewModel.scheduled_at, InterviewModel.id)
            if criteria:
                stmt = stmt.where(*criteria)
            result = await session.execute(stmt)
            return [self._to_record(m) for m in result.scalars().all()]

    async def get(self, interview_id: str) -> InterviewRecord | None:
        async with self._session_factory() as session:
            model = await self._get_model(session, interview_id)
            return self._to_record(model) if model else None

    async def save(self, record: InterviewRecord) -> InterviewRecord:
        async with self._session_factory() as session, session.begin():
            model = await self._get_model(session, record.id)
            if model is None:
                model = InterviewModel(id=record.id)
                session.add(model)
            self._apply(model, record)
        return record

    async def list_by_candidate(self, candidate_id: str) -> list[InterviewRecord]:
        return await self._select(InterviewModel.candidate_id == candidate_id)

    async def list_between(self, start: datetime, end: datetime) -> list[InterviewRecord]:
        return await self._select(
            InterviewModel.scheduled_at >= _utc(start),
            InterviewModel.scheduled_at < _utc(end),
        )

    async def list_all(self) -> list[InterviewRecord]:
        return await self._select()


class SqlAuditRepository(SqlRepository[AuditEntryModel], AuditRepository):
    """Repository for the audit trail."""

    @property
    def _model_class(self) -> type[AuditEntryModel]:
        """Get the model class."""
        return AuditEntryModel

    async def append(self, entry: AuditEntry) -> AuditEntry:
        async with self._session_factory() as session, session.begin():
            session.add(
                AuditEntryModel(
                    id=entry.id,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    action=entry.action,
                    from_value=entry.from_value,
                    to_value=entry.to_value,
                    at=_utc(entry.at),
                    notes=entry.notes,
                )
            )
        return entry

    async def list_for(self, entity_type: str, entity_id: str) -> list[AuditEntry]:
        async with self._session_factory() as session:
            stmt = (
                select(AuditEntryModel)
                .where(AuditEntryModel.entity_type == entity_type)
                .where(AuditEntryModel.entity_id == entity_id)
                .order_by(AuditEntryModel.seq)
            )
            result = await session.execute(stmt)
            return [
                AuditEntry(
                    id=m.id,
                    entity_type=m.entity_type,
                    entity_id=m.entity_id,
                    action=m.action,
                    from_value=m.from_value,
                    to_value=m.to_value,
                    at=ensure_aware(m.at),
                    notes=m.notes,
                )
                for m in result.scalars().all()
            ]
