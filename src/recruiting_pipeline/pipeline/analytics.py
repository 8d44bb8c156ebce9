"""
Pipeline analytics.

Per-stage counts and conversion metrics. Totals are always computed over the
full record set handed in, never over a display-filtered subset.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, Field

from recruiting_pipeline.pipeline.schemas import (
    PIPELINE_STAGES,
    ApplicationRecord,
    InterviewOutcome,
    InterviewRecord,
    InterviewStatus,
    Stage,
)


def round1(value: float) -> float:
    """Round to one decimal place, halves away from zero."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> float:
    """part / whole as a percentage rounded to one decimal; 0 when whole is 0."""
    if whole == 0:
        return 0.0
    return round1(part / whole * 100)


class PipelineAnalytics(BaseModel):
    """Aggregate view of the application pipeline."""

    stage_counts: dict[Stage, int] = Field(
        default_factory=dict,
        description="Applications per pipeline stage (all 15 stages, zero-filled)",
    )
    rejected_count: int = Field(default=0, ge=0, description="Rejected applications")
    total: int = Field(default=0, ge=0, description="All applications")
    ready_to_fly: int = Field(default=0, ge=0, description="Applications at ready-to-fly")
    departed: int = Field(default=0, ge=0, description="Applications at departed")
    conversion_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="(ready_to_fly + departed) / total as a percentage",
    )


class InterviewStatistics(BaseModel):
    """Aggregate view of interviews."""

    total: int = Field(default=0, ge=0)
    by_status: dict[InterviewStatus, int] = Field(default_factory=dict)
    by_location: dict[str, int] = Field(default_factory=dict)
    completion_rate: float = Field(default=0.0, description="Completed / total, percent")
    average_duration: float = Field(default=0.0, description="Mean duration in minutes")
    success_rate: float = Field(default=0.0, description="Passed / completed, percent")


class AnalyticsAggregator:
    """Computes pipeline and interview metrics."""

    def aggregate(self, records: Iterable[ApplicationRecord]) -> PipelineAnalytics:
        """
        Count applications per stage and compute the conversion rate.

        Args:
            records: Every application, unfiltered.

        Returns:
            Pipeline analytics; sum(stage_counts) + rejected_count == total.
        """
        counts = Counter(r.stage for r in records)
        total = sum(counts.values())
        ready_to_fly = counts[Stage.READY_TO_FLY]
        departed = counts[Stage.DEPARTED]
        return PipelineAnalytics(
            stage_counts={stage: counts[stage] for stage in PIPELINE_STAGES},
            rejected_count=counts[Stage.REJECTED],
            total=total,
            ready_to_fly=ready_to_fly,
            departed=departed,
            conversion_rate=percentage(ready_to_fly + departed, total),
        )

    def interview_statistics(self, interviews: Iterable[InterviewRecord]) -> InterviewStatistics:
        """Summarize interviews by status and location, with completion and success rates."""
        records = list(interviews)
        total = len(records)
        by_status = Counter(r.status for r in records)
        completed = by_status[InterviewStatus.COMPLETED]
        passed = sum(
            1 for r in records if r.status is InterviewStatus.COMPLETED and r.result is InterviewOutcome.PASSED
        )
        return InterviewStatistics(
            total=total,
            by_status={status: by_status[status] for status in InterviewStatus},
            by_location=dict(Counter(r.location.value for r in records)),
            completion_rate=percentage(completed, total),
            average_duration=round1(sum(r.duration_minutes for r in records) / total) if total else 0.0,
            success_rate=percentage(passed, completed),
        )
