"""
Stage transition engine.

Validates and applies pipeline-stage changes to applications, stamping the
checkpoint timestamps and recording every change in the audit trail.
Any stage can be reached from any other so operators can correct mistakes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from recruiting_pipeline.config import get_settings
from recruiting_pipeline.pipeline.errors import (
    BulkOutcome,
    DependencyFailureError,
    InvalidTransition,
)
from recruiting_pipeline.pipeline.locks import KeyedLock
from recruiting_pipeline.pipeline.retry import RetryPolicy
from recruiting_pipeline.pipeline.schemas import ApplicationRecord, AuditEntry, Stage

if TYPE_CHECKING:
    from recruiting_pipeline.db.repository import ApplicationRepository, AuditRepository

logger = logging.getLogger(__name__)

# Stage -> timestamp field stamped when the stage is entered
CHECKPOINT_FIELDS: dict[Stage, str] = {
    Stage.SHORTLISTED: "shortlisted_at",
    Stage.INTERVIEW_PASSED: "interviewed_at",
    Stage.DEPARTED: "decision_at",
    Stage.READY_TO_FLY: "decision_at",
    Stage.REJECTED: "decision_at",
}
CHECKPOINT_ORDER: tuple[str, ...] = ("shortlisted_at", "interviewed_at", "decision_at")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def stamp_checkpoint(record: ApplicationRecord, stage: Stage, now: datetime) -> dict[str, datetime]:
    """
    Work out which checkpoint timestamp entering a stage should set.

    A checkpoint is never overwritten once set, and is left unset when
    stamping it would put it out of order with the other checkpoints.

    Args:
        record: Application as it is before the transition.
        stage: Stage being entered.
        now: Current time.

    Returns:
        Field updates to apply (empty when nothing should be stamped).
    """
    field = CHECKPOINT_FIELDS.get(stage)
    if field is None or getattr(record, field) is not None:
        return {}

    position = CHECKPOINT_ORDER.index(field)
    earlier = [getattr(record, f) for f in CHECKPOINT_ORDER[:position]]
    later = [getattr(record, f) for f in CHECKPOINT_ORDER[position + 1 :]]
    if any(t is not None and t > now for t in earlier) or any(t is not None and t < now for t in later):
        logger.debug(f"Not stamping {field} on {record.id}: would break checkpoint order")
        return {}
    return {field: now}


class StageTransitionEngine:
    """
    Applies stage changes to application records.

    Writes for one application are serialized through a per-application
    critical section; repository calls go through the retry policy.
    """

    def __init__(
        self,
        applications: ApplicationRepository,
        audit: AuditRepository,
        retry: RetryPolicy | None = None,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the transition engine.

        Args:
            applications: Application storage.
            audit: Audit trail storage.
            retry: Retry policy for repository calls. Built from settings if None.
            locks: Per-key lock registry. Created if None.
            clock: Source of the current time (UTC).
        """
        self._applications = applications
        self._audit = audit
        self._retry = retry or RetryPolicy.from_settings()
        self._locks = locks or KeyedLock(timeout=get_settings().lock_timeout)
        self._clock = clock or _utcnow

    async def get(self, application_id: str) -> ApplicationRecord | None:
        """Get an application by id."""
        return await self._retry.call("applications.get", lambda: self._applications.get(application_id))

    async def list_all(self) -> list[ApplicationRecord]:
        """List every application."""
        return await self._retry.call("applications.list_all", self._applications.list_all)

    async def find(self, candidate_id: str, job_id: str) -> ApplicationRecord | None:
        """Get the application a candidate made to a job."""
        return await self._retry.call(
            "applications.find_by_candidate_and_job",
            lambda: self._applications.find_by_candidate_and_job(candidate_id, job_id),
        )

    async def history(self, application_id: str) -> list[AuditEntry]:
        """Get the audit trail of an application, oldest first."""
        return await self._retry.call(
            "audit.list_for",
            lambda: self._audit.list_for("application", application_id),
        )

    async def create(self, candidate_id: str, job_id: str, notes: str = "") -> ApplicationRecord:
        """
        Register a submitted application at the applied stage.

        Args:
            candidate_id: Candidate who applied.
            job_id: Job applied to.
            notes: Optional notes.

        Returns:
            The stored application.
        """
        now = self._clock()
        record = ApplicationRecord(candidate_id=candidate_id, job_id=job_id, applied_at=now, notes=notes)
        async with self._locks.hold(f"application:{record.id}"):
            saved = await self._retry.call("applications.save", lambda: self._applications.save(record))
            await self._append_audit(saved.id, "created", None, Stage.APPLIED.value, now, notes)
        logger.info(f"Application {saved.id} created for candidate {candidate_id} on job {job_id}")
        return saved

    async def transition(
        self,
        application_id: str,
        target_stage: Stage | str,
        *,
        notes: str | None = None,
    ) -> ApplicationRecord | InvalidTransition:
        """
        Move an application to a stage.

        Args:
            application_id: Application to move.
            target_stage: Stage member or identifier.
            notes: Optional notes; replaces the application's notes when given.

        Returns:
            The updated application, or InvalidTransition when the stage is
            unknown or the application does not exist.

        Raises:
            DependencyFailureError: If storage keeps failing.
        """
        try:
            target = Stage.parse(target_stage)
        except ValueError as e:
            logger.warning(f"Rejected transition of {application_id}: {e}")
            return InvalidTransition(entity_id=application_id, reason=str(e), target=str(target_stage))

        async with self._locks.hold(f"application:{application_id}"):
            current = await self.get(application_id)
            if current is None:
                logger.warning(f"Rejected transition of {application_id}: application not found")
                return InvalidTransition(
                    entity_id=application_id,
                    reason="application not found",
                    target=target.value,
                )
            return await self._apply(current, target, notes)

    async def advance(
        self,
        candidate_id: str,
        job_id: str,
        target_stage: Stage,
        *,
        only_from: Sequence[Stage] | None = None,
        notes: str | None = None,
    ) -> ApplicationRecord | InvalidTransition | None:
        """
        Move the application a candidate made to a job, if there is one.

        Args:
            candidate_id: Candidate identifier.
            job_id: Job identifier.
            target_stage: Stage to enter.
            only_from: Apply only when the application is currently in one of these stages.
            notes: Optional notes.

        Returns:
            The updated application, None when skipped by only_from, or
            InvalidTransition when no application exists.
        """
        found = await self.find(candidate_id, job_id)
        if found is None:
            return InvalidTransition(
                entity_id=f"{candidate_id}/{job_id}",
                reason="no application for candidate and job",
                target=target_stage.value,
            )

        async with self._locks.hold(f"application:{found.id}"):
            current = await self.get(found.id)
            if current is None:
                return InvalidTransition(entity_id=found.id, reason="application not found", target=target_stage.value)
            if only_from is not None and current.stage not in only_from:
                logger.debug(f"Application {current.id} left at {current.stage.value}")
                return None
            return await self._apply(current, target_stage, notes)

    async def bulk_transition(
        self,
        application_ids: Sequence[str],
        target_stage: Stage | str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BulkOutcome[ApplicationRecord]]:
        """
        Move several applications to one stage, best effort.

        Each application succeeds or fails on its own; a failure never aborts
        the batch and already-committed items stay committed.

        Args:
            application_ids: Applications to move.
            target_stage: Stage member or identifier.
            cancel_event: When set, no further items are started.

        Returns:
            One outcome per processed item, in request order.
        """
        outcomes: list[BulkOutcome[ApplicationRecord]] = []
        for index, application_id in enumerate(application_ids):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Bulk transition cancelled after {index} of {len(application_ids)} items")
                break
            try:
                result = await self.transition(application_id, target_stage)
            except DependencyFailureError as e:
                outcomes.append(BulkOutcome(index=index, key=application_id, error=e.failure))
                continue
            if isinstance(result, InvalidTransition):
                outcomes.append(BulkOutcome(index=index, key=application_id, error=result))
            else:
                outcomes.append(BulkOutcome(index=index, key=application_id, record=result))

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(f"Bulk transition to {target_stage}: {len(outcomes) - failed} succeeded, {failed} failed")
        return outcomes

    async def _apply(
        self,
        current: ApplicationRecord,
        target: Stage,
        notes: str | None,
    ) -> ApplicationRecord:
        now = self._clock()
        update: dict[str, object] = {"stage": target, "updated_at": now}
        update.update(stamp_checkpoint(current, target, now))
        if notes is not None:
            update["notes"] = notes

        updated = current.model_copy(update=update)
        saved = await self._retry.call("applications.save", lambda: self._applications.save(updated))
        await self._append_audit(saved.id, "transition", current.stage.value, target.value, now, notes or "")

        if current.stage is Stage.REJECTED and target is not Stage.REJECTED:
            logger.info(f"Application {saved.id} reopened from rejected to {target.value}")
        else:
            logger.info(f"Application {saved.id} moved {current.stage.value} -> {target.value}")
        return saved

    async def _append_audit(
        self,
        application_id: str,
        action: str,
        from_value: str | None,
        to_value: str | None,
        at: datetime,
        notes: str,
    ) -> None:
        entry = AuditEntry(
            entity_type="application",
            entity_id=application_id,
            action=action,
            from_value=from_value,
            to_value=to_value,
            at=at,
            notes=notes,
        )
        await self._retry.call("audit.append", lambda: self._audit.append(entry))
