"""
Typed failures returned by pipeline operations.

Conflicts and invalid transitions are ordinary return values. Repository
failures are raised while retrying and become a DependencyFailure once
the retry budget is spent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from recruiting_pipeline.pipeline.schemas import InterviewRecord


class ConflictingInterview(BaseModel):
    """An existing interview that overlaps a proposed one."""

    interview_id: str = Field(..., description="Identifier of the existing interview")
    scheduled_at: datetime = Field(..., description="Start of the existing interview")
    ends_at: datetime = Field(..., description="Exclusive end of the existing interview")
    interviewer: str = Field(default="", description="Interviewer of the existing interview")

    @classmethod
    def from_record(cls, record: InterviewRecord) -> "ConflictingInterview":
        return cls(
            interview_id=record.id,
            scheduled_at=record.scheduled_at,
            ends_at=record.ends_at,
            interviewer=record.interviewer,
        )


class ConflictError(BaseModel):
    """The proposed interview overlaps the candidate's existing interviews."""

    code: Literal["conflict"] = "conflict"
    candidate_id: str = Field(..., description="Candidate being double-booked")
    proposed_start: datetime = Field(..., description="Start of the rejected interval")
    proposed_end: datetime = Field(..., description="Exclusive end of the rejected interval")
    conflicts: list[ConflictingInterview] = Field(
        default_factory=list,
        description="Existing interviews the proposal overlaps",
    )

    @property
    def message(self) -> str:
        first = self.conflicts[0] if self.conflicts else None
        if first is None:
            return f"Double booking detected for candidate {self.candidate_id}"
        return (
            f"Double booking detected for candidate {self.candidate_id}: "
            f"interview {first.interview_id} is already scheduled at {first.scheduled_at.isoformat()}"
        )


class InvalidTransition(BaseModel):
    """A stage or status change that cannot be applied."""

    code: Literal["invalid_transition"] = "invalid_transition"
    entity_id: str = Field(..., description="Application or interview the request referred to")
    reason: str = Field(..., description="Why the request was rejected")
    target: str | None = Field(default=None, description="Requested target stage or status")

    @property
    def message(self) -> str:
        return f"Invalid transition for {self.entity_id}: {self.reason}"


class DependencyFailure(BaseModel):
    """A repository call kept failing after all retries."""

    code: Literal["dependency_failure"] = "dependency_failure"
    operation: str = Field(..., description="Repository operation that failed")
    attempts: int = Field(..., ge=1, description="Attempts made before giving up")
    detail: str = Field(default="", description="Last error seen")

    @property
    def message(self) -> str:
        return f"{self.operation} failed after {self.attempts} attempt(s): {self.detail}"


R = TypeVar("R")


class BulkOutcome(BaseModel, Generic[R]):
    """Result of one item in a best-effort batch."""

    index: int = Field(..., ge=0, description="Position of the item in the request")
    key: str = Field(default="", description="Identifier the item referred to")
    record: R | None = Field(default=None, description="Committed record on success")
    error: ConflictError | InvalidTransition | DependencyFailure | None = Field(
        default=None,
        description="Failure on error",
    )

    @property
    def ok(self) -> bool:
        return self.error is None


class RepositoryError(Exception):
    """Exception raised when a repository call fails transiently."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class DependencyFailureError(Exception):
    """Exception carrying a DependencyFailure out of a single operation."""

    def __init__(self, failure: DependencyFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure
