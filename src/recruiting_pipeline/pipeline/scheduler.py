"""
Interview scheduler.

Owns interview records. Every write that can change a candidate's calendar
checks for overlaps and commits inside the candidate's critical section, so
two concurrent requests can never both book the same time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from recruiting_pipeline.config import Settings, get_settings
from recruiting_pipeline.pipeline.conflicts import ConflictDetector
from recruiting_pipeline.pipeline.errors import (
    BulkOutcome,
    ConflictError,
    ConflictingInterview,
    DependencyFailureError,
    InvalidTransition,
)
from recruiting_pipeline.pipeline.locks import KeyedLock
from recruiting_pipeline.pipeline.retry import RetryPolicy
from recruiting_pipeline.pipeline.schemas import (
    AuditEntry,
    CalendarEvent,
    Interval,
    InterviewLocation,
    InterviewOutcome,
    InterviewRecord,
    InterviewStatus,
    ScheduleRequest,
    Stage,
    TimeSlot,
    ensure_aware,
)
from recruiting_pipeline.pipeline.transitions import StageTransitionEngine

if TYPE_CHECKING:
    from recruiting_pipeline.db.repository import AuditRepository, InterviewRepository
    from recruiting_pipeline.directory import CandidateDirectory, JobDirectory

logger = logging.getLogger(__name__)

# Application stages that scheduling an interview moves forward
_PRE_INTERVIEW_STAGES = (Stage.APPLIED, Stage.SHORTLISTED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InterviewScheduler:
    """
    Schedules, reschedules, cancels, and completes interviews.

    Completing an interview moves the matching application forward through
    the stage transition engine.
    """

    def __init__(
        self,
        interviews: InterviewRepository,
        audit: AuditRepository,
        transitions: StageTransitionEngine,
        detector: ConflictDetector | None = None,
        retry: RetryPolicy | None = None,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
        candidates: CandidateDirectory | None = None,
        jobs: JobDirectory | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            interviews: Interview storage.
            audit: Audit trail storage.
            transitions: Engine used for the stage side effects of scheduling and completion.
            detector: Overlap detector. Created if None.
            retry: Retry policy for repository calls. Built from settings if None.
            locks: Per-key lock registry. Created if None.
            clock: Source of the current time (UTC).
            settings: Scheduling settings. Loaded if None.
            candidates: Optional candidate lookup for calendar decoration.
            jobs: Optional job lookup for calendar decoration.
        """
        self._settings = settings or get_settings()
        self._interviews = interviews
        self._audit = audit
        self._transitions = transitions
        self._detector = detector or ConflictDetector()
        self._retry = retry or RetryPolicy.from_settings()
        self._locks = locks or KeyedLock(timeout=self._settings.lock_timeout)
        self._clock = clock or _utcnow
        self._candidates = candidates
        self._jobs = jobs
        self._completion_stage = Stage.parse(self._settings.completion_target_stage)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, interview_id: str) -> InterviewRecord | None:
        """Get an interview by id."""
        return await self._retry.call("interviews.get", lambda: self._interviews.get(interview_id))

    async def _candidate_interviews(self, candidate_id: str) -> list[InterviewRecord]:
        return await self._retry.call(
            "interviews.list_by_candidate",
            lambda: self._interviews.list_by_candidate(candidate_id),
        )

    async def list_interviews(
        self,
        *,
        candidate_id: str | None = None,
        job_id: str | None = None,
        status: InterviewStatus | None = None,
        interviewer: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[InterviewRecord]:
        """
        List interviews matching every given filter.

        Args:
            candidate_id: Only this candidate's interviews.
            job_id: Only interviews for this job.
            status: Only interviews in this status.
            interviewer: Case-insensitive substring of the interviewer name.
            start: Only interviews starting at or after this time.
            end: Only interviews starting before this time.

        Returns:
            Matching interviews ordered by start time.
        """
        if candidate_id is not None:
            records = await self._candidate_interviews(candidate_id)
        elif start is not None and end is not None:
            records = await self._retry.call("interviews.list_between", lambda: self._interviews.list_between(start, end))
        else:
            records = await self._retry.call("interviews.list_all", self._interviews.list_all)

        needle = interviewer.lower() if interviewer else None
        return [
            r
            for r in records
            if (job_id is None or r.job_id == job_id)
            and (status is None or r.status is status)
            and (needle is None or needle in r.interviewer.lower())
            and (start is None or r.scheduled_at >= ensure_aware(start))
            and (end is None or r.scheduled_at < ensure_aware(end))
        ]

    async def upcoming(self, days: int = 7) -> list[InterviewRecord]:
        """Get scheduled interviews starting within the next N days."""
        now = self._clock()
        return await self.list_interviews(
            status=InterviewStatus.SCHEDULED,
            start=now,
            end=now + timedelta(days=days),
        )

    async def requiring_followup(self, days: int = 2) -> list[InterviewRecord]:
        """Get completed interviews older than N days that still lack a result or notes."""
        cutoff = self._clock() - timedelta(days=days)
        completed = await self.list_interviews(status=InterviewStatus.COMPLETED)
        return [r for r in completed if r.updated_at <= cutoff and (r.result is None or not r.notes)]

    async def check_conflicts(
        self,
        candidate_id: str,
        scheduled_at: datetime,
        duration_minutes: int | None = None,
        exclude_id: str | None = None,
    ) -> list[ConflictingInterview]:
        """
        Preview the conflicts a booking would hit, without committing anything.

        The answer can be stale by the time a write is attempted; schedule()
        checks again inside the candidate's critical section.
        """
        if duration_minutes is None:
            duration_minutes = self._settings.default_interview_duration
        proposed = Interval.from_duration(scheduled_at, duration_minutes)
        existing = await self._candidate_interviews(candidate_id)
        conflicts = self._detector.find_conflicts(existing, proposed, exclude_id=exclude_id)
        return [ConflictingInterview.from_record(r) for r in conflicts]

    async def available_slots(self, day: date, interviewer: str | None = None) -> list[TimeSlot]:
        """
        Build the slot grid for a day.

        A slot is marked unavailable only when a non-cancelled interview starts
        exactly at the slot's start. This is coarser than the overlap rule
        applied by schedule(): a slot shown as available can still be refused
        with a ConflictError, and a slot inside a running interview is shown
        as available.

        Args:
            day: Calendar day in the scheduling timezone.
            interviewer: Only consider this interviewer's interviews.

        Returns:
            Every slot of the visible window, in order.
        """
        tz = ZoneInfo(self._settings.scheduling_timezone)
        day_start = datetime.combine(day, time(0), tzinfo=tz)
        day_end = day_start + timedelta(days=1)

        records = await self._retry.call(
            "interviews.list_between",
            lambda: self._interviews.list_between(day_start, day_end),
        )
        booked = {
            r.scheduled_at.astimezone(timezone.utc)
            for r in records
            if r.is_active and (interviewer is None or r.interviewer == interviewer)
        }

        step = timedelta(minutes=self._settings.slot_granularity_minutes)
        slot = day_start + timedelta(hours=self._settings.visible_hours_start)
        window_end = day_start + timedelta(hours=self._settings.visible_hours_end)
        slots: list[TimeSlot] = []
        while slot < window_end:
            slots.append(
                TimeSlot(
                    start=slot,
                    label=slot.strftime("%H:%M"),
                    available=slot.astimezone(timezone.utc) not in booked,
                )
            )
            slot += step
        return slots

    async def calendar_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Render the interviews starting in [start, end) as calendar events."""
        records = await self.list_interviews(start=start, end=end)
        candidates = (
            await self._candidates.get_many({r.candidate_id for r in records}) if self._candidates else {}
        )
        jobs = await self._jobs.get_many({r.job_id for r in records}) if self._jobs else {}

        events = []
        for r in records:
            candidate = candidates.get(r.candidate_id)
            job = jobs.get(r.job_id)
            events.append(
                CalendarEvent(
                    id=r.id,
                    title=f"{candidate.name if candidate else 'Unknown'} - {job.title if job else 'Unknown'}",
                    start=r.scheduled_at,
                    end=r.ends_at,
                    extended={
                        "status": r.status.value,
                        "interviewer": r.interviewer,
                        "location": r.location.value,
                        "candidate_id": r.candidate_id,
                        "job_id": r.job_id,
                    },
                )
            )
        return events

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def schedule(
        self,
        candidate_id: str,
        job_id: str,
        scheduled_at: datetime,
        duration_minutes: int | None = None,
        interviewer: str = "",
        location: InterviewLocation | str = InterviewLocation.OFFICE,
    ) -> InterviewRecord | ConflictError:
        """
        Book an interview unless it overlaps the candidate's other interviews.

        Args:
            candidate_id: Candidate to interview.
            job_id: Job the interview is for.
            scheduled_at: Start time.
            duration_minutes: Length in minutes (configured default if None).
            interviewer: Interviewer name.
            location: Where the interview takes place.

        Returns:
            The booked interview, or a ConflictError naming the overlapping interviews.

        Raises:
            ValueError: If duration_minutes is not positive.
            DependencyFailureError: If storage keeps failing.
        """
        now = self._clock()
        record = InterviewRecord(
            candidate_id=candidate_id,
            job_id=job_id,
            scheduled_at=scheduled_at,
            duration_minutes=(
                self._settings.default_interview_duration if duration_minutes is None else duration_minutes
            ),
            interviewer=interviewer,
            location=InterviewLocation(location),
            created_at=now,
            updated_at=now,
        )

        async with self._locks.hold(f"candidate:{candidate_id}"):
            existing = await self._candidate_interviews(candidate_id)
            conflicts = self._detector.find_conflicts(existing, record.interval)
            if conflicts:
                logger.info(
                    f"Refused interview for candidate {candidate_id} at {record.scheduled_at.isoformat()}: "
                    f"overlaps {', '.join(c.id for c in conflicts)}"
                )
                return self._conflict(record, conflicts)

            saved = await self._retry.call("interviews.save", lambda: self._interviews.save(record))
            await self._append_audit(saved.id, "scheduled", None, saved.scheduled_at.isoformat(), now)

        logger.info(f"Scheduled interview {saved.id} for candidate {candidate_id} at {saved.scheduled_at.isoformat()}")

        await self._advance_application(saved, Stage.INTERVIEW_SCHEDULED, only_from=_PRE_INTERVIEW_STAGES)
        return saved

    async def reschedule(
        self,
        interview_id: str,
        new_scheduled_at: datetime,
        duration_minutes: int | None = None,
    ) -> InterviewRecord | ConflictError | InvalidTransition:
        """
        Move a scheduled interview to a new start time.

        The interview being moved is left out of the overlap check.

        Args:
            interview_id: Interview to move.
            new_scheduled_at: New start time.
            duration_minutes: New length in minutes (unchanged if None).

        Returns:
            The updated interview, a ConflictError, or InvalidTransition when
            the interview can't be moved or the duration is not positive.
        """
        if duration_minutes is not None and duration_minutes <= 0:
            return InvalidTransition(
                entity_id=interview_id,
                reason=f"duration must be positive, got {duration_minutes}",
                target="reschedule",
            )

        found = await self.get(interview_id)
        if found is None:
            return InvalidTransition(entity_id=interview_id, reason="interview not found", target="reschedule")

        async with self._locks.hold(f"candidate:{found.candidate_id}"):
            current = await self.get(interview_id)
            if current is None:
                return InvalidTransition(entity_id=interview_id, reason="interview not found", target="reschedule")
            if current.status is not InterviewStatus.SCHEDULED:
                return InvalidTransition(
                    entity_id=interview_id,
                    reason=f"cannot reschedule a {current.status.value} interview",
                    target="reschedule",
                )

            now = self._clock()
            moved = current.model_copy(
                update={
                    "scheduled_at": ensure_aware(new_scheduled_at),
                    "duration_minutes": current.duration_minutes if duration_minutes is None else duration_minutes,
                    "updated_at": now,
                }
            )
            existing = await self._candidate_interviews(current.candidate_id)
            conflicts = self._detector.find_conflicts(existing, moved.interval, exclude_id=interview_id)
            if conflicts:
                logger.info(f"Refused reschedule of {interview_id}: overlaps {', '.join(c.id for c in conflicts)}")
                return self._conflict(moved, conflicts)

            saved = await self._retry.call("interviews.save", lambda: self._interviews.save(moved))
            await self._append_audit(
                interview_id,
                "rescheduled",
                current.scheduled_at.isoformat(),
                saved.scheduled_at.isoformat(),
                now,
            )

        logger.info(f"Rescheduled interview {interview_id} to {saved.scheduled_at.isoformat()}")
        return saved

    async def cancel(self, interview_id: str, reason: str = "") -> InterviewRecord | InvalidTransition:
        """
        Cancel an interview. Cancelling a cancelled interview changes nothing.

        Args:
            interview_id: Interview to cancel.
            reason: Cancellation reason, stored in notes.

        Returns:
            The cancelled interview, or InvalidTransition when it is unknown,
            completed, or marked as a no-show.
        """
        return await self._set_status(interview_id, InterviewStatus.CANCELLED, notes=reason)

    async def mark_no_show(self, interview_id: str, notes: str = "") -> InterviewRecord | InvalidTransition:
        """Record that the candidate did not attend a scheduled interview."""
        return await self._set_status(interview_id, InterviewStatus.NO_SHOW, notes=notes)

    async def complete(
        self,
        interview_id: str,
        outcome: InterviewOutcome | str = InterviewOutcome.PASSED,
        notes: str = "",
    ) -> InterviewRecord | InvalidTransition:
        """
        Complete a scheduled interview and move the application on.

        The outcome is stored on the interview and the application moves to the
        configured completion stage. With route_completion_by_outcome enabled,
        a failed interview rejects the application instead and an on-hold
        result leaves its stage alone.

        Args:
            interview_id: Interview to complete.
            outcome: Interview result.
            notes: Interviewer notes.

        Returns:
            The completed interview, or InvalidTransition.
        """
        try:
            result = InterviewOutcome(outcome)
        except ValueError:
            return InvalidTransition(entity_id=interview_id, reason=f"unknown outcome {outcome!r}", target="completed")

        completed = await self._set_status(interview_id, InterviewStatus.COMPLETED, notes=notes, result=result)
        if isinstance(completed, InvalidTransition):
            return completed

        target: Stage | None = self._completion_stage
        if self._settings.route_completion_by_outcome:
            target = {
                InterviewOutcome.PASSED: self._completion_stage,
                InterviewOutcome.FAILED: Stage.REJECTED,
            }.get(result)
        if target is not None:
            await self._advance_application(completed, target, notes=notes or None)
        return completed

    async def bulk_schedule(
        self,
        requests: Sequence[ScheduleRequest],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BulkOutcome[InterviewRecord]]:
        """
        Schedule several interviews, best effort.

        Each request is checked and committed on its own, in order, so a
        request can conflict with one committed earlier in the same batch.

        Args:
            requests: Interviews to book.
            cancel_event: When set, no further requests are started.

        Returns:
            One outcome per processed request, in request order.
        """
        outcomes: list[BulkOutcome[InterviewRecord]] = []
        for index, request in enumerate(requests):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Bulk schedule cancelled after {index} of {len(requests)} requests")
                break
            try:
                result = await self.schedule(
                    request.candidate_id,
                    request.job_id,
                    request.scheduled_at,
                    duration_minutes=request.duration_minutes,
                    interviewer=request.interviewer,
                    location=request.location,
                )
            except DependencyFailureError as e:
                outcomes.append(BulkOutcome(index=index, key=request.candidate_id, error=e.failure))
                continue
            if isinstance(result, ConflictError):
                outcomes.append(BulkOutcome(index=index, key=request.candidate_id, error=result))
            else:
                outcomes.append(BulkOutcome(index=index, key=request.candidate_id, record=result))

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(f"Bulk schedule: {len(outcomes) - failed} succeeded, {failed} failed")
        return outcomes

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _set_status(
        self,
        interview_id: str,
        status: InterviewStatus,
        *,
        notes: str = "",
        result: InterviewOutcome | None = None,
    ) -> InterviewRecord | InvalidTransition:
        found = await self.get(interview_id)
        if found is None:
            return InvalidTransition(entity_id=interview_id, reason="interview not found", target=status.value)

        async with self._locks.hold(f"candidate:{found.candidate_id}"):
            current = await self.get(interview_id)
            if current is None:
                return InvalidTransition(entity_id=interview_id, reason="interview not found", target=status.value)
            if status is InterviewStatus.CANCELLED and current.status is InterviewStatus.CANCELLED:
                return current
            if current.status is not InterviewStatus.SCHEDULED:
                return InvalidTransition(
                    entity_id=interview_id,
                    reason=f"interview is already {current.status.value}",
                    target=status.value,
                )

            now = self._clock()
            update: dict[str, object] = {"status": status, "updated_at": now}
            if notes:
                update["notes"] = notes
            if result is not None:
                update["result"] = result
            changed = current.model_copy(update=update)
            saved = await self._retry.call("interviews.save", lambda: self._interviews.save(changed))
            await self._append_audit(interview_id, status.value, current.status.value, status.value, now, notes)

        logger.info(f"Interview {interview_id} is now {status.value}")
        return saved

    async def _advance_application(
        self,
        interview: InterviewRecord,
        target: Stage,
        *,
        only_from: Sequence[Stage] | None = None,
        notes: str | None = None,
    ) -> None:
        """Move the matching application after an interview change has been committed."""
        try:
            moved = await self._transitions.advance(
                interview.candidate_id,
                interview.job_id,
                target,
                only_from=only_from,
                notes=notes,
            )
        except DependencyFailureError as e:
            logger.error(
                f"Interview {interview.id} saved but application not moved to {target.value}: {e.failure.detail}"
            )
            return
        if isinstance(moved, InvalidTransition):
            logger.warning(f"Interview {interview.id} saved but application not moved: {moved.reason}")

    @staticmethod
    def _conflict(proposed: InterviewRecord, conflicts: list[InterviewRecord]) -> ConflictError:
        return ConflictError(
            candidate_id=proposed.candidate_id,
            proposed_start=proposed.scheduled_at,
            proposed_end=proposed.ends_at,
            conflicts=[ConflictingInterview.from_record(c) for c in conflicts],
        )

    async def _append_audit(
        self,
        interview_id: str,
        action: str,
        from_value: str | None,
        to_value: str | None,
        at: datetime,
        notes: str = "",
    ) -> None:
        entry = AuditEntry(
            entity_type="interview",
            entity_id=interview_id,
            action=action,
            from_value=from_value,
            to_value=to_value,
            at=at,
            notes=notes,
        )
        try:
            await self._retry.call("audit.append", lambda: self._audit.append(entry))
        except DependencyFailureError as e:
            logger.error(f"Interview {interview_id} {action} but audit entry not written: {e.failure.detail}")
