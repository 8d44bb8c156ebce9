"""
Interval overlap detection for interview scheduling.

Intervals are half-open: an interview ending at 10:00 does not conflict
with one starting at 10:00.
"""

from __future__ import annotations

from collections.abc import Iterable

from recruiting_pipeline.pipeline.schemas import Interval, InterviewRecord


def intervals_overlap(first: Interval, second: Interval) -> bool:
    """Return True when two half-open intervals share any instant."""
    return first.start < second.end and second.start < first.end


def find_conflicts(
    existing: Iterable[InterviewRecord],
    proposed: Interval,
    *,
    exclude_id: str | None = None,
) -> list[InterviewRecord]:
    """
    Find the interviews that overlap a proposed interval.

    Args:
        existing: The candidate's interviews, in any status.
        proposed: Interval being scheduled.
        exclude_id: Interview to leave out (the one being rescheduled).

    Returns:
        Overlapping non-cancelled interviews, ordered by start time.
    """
    conflicts = [
        record
        for record in existing
        if record.is_active
        and record.id != exclude_id
        and intervals_overlap(record.interval, proposed)
    ]
    return sorted(conflicts, key=lambda r: (r.scheduled_at, r.id))


class ConflictDetector:
    """Stateless wrapper around find_conflicts for injection into the scheduler."""

    def find_conflicts(
        self,
        existing: Iterable[InterviewRecord],
        proposed: Interval,
        *,
        exclude_id: str | None = None,
    ) -> list[InterviewRecord]:
        return find_conflicts(existing, proposed, exclude_id=exclude_id)
