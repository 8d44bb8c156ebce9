"""
Pydantic schemas for the candidate pipeline.

Defines the pipeline stages, interview enums, and the application,
interview, and audit records shared by every pipeline component.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Generic, Literal, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Stage(str, Enum):
    """Stages an application moves through after the candidate applies."""

    APPLIED = "applied"
    SHORTLISTED = "shortlisted"
    INTERVIEW_SCHEDULED = "interview-scheduled"
    INTERVIEW_PASSED = "interview-passed"
    MEDICAL_SCHEDULED = "medical-scheduled"
    MEDICAL_PASSED = "medical-passed"
    VISA_APPLICATION = "visa-application"
    VISA_APPROVED = "visa-approved"
    POLICE_CLEARANCE = "police-clearance"
    EMBASSY_ATTESTATION = "embassy-attestation"
    TRAVEL_DOCUMENTS = "travel-documents"
    FLIGHT_BOOKING = "flight-booking"
    PRE_DEPARTURE = "pre-departure"
    DEPARTED = "departed"
    READY_TO_FLY = "ready-to-fly"

    # Lateral terminal stage, reachable from anywhere
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: "Stage | str") -> "Stage":
        """
        Resolve a stage identifier.

        Args:
            value: A Stage member or its identifier (e.g. "visa-approved").

        Returns:
            The matching Stage.

        Raises:
            ValueError: If the identifier is not a defined stage.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown pipeline stage: {value!r}") from None

    @property
    def label(self) -> str:
        """Human-readable stage name."""
        return self.value.replace("-", " ").title()

    @property
    def is_terminal(self) -> bool:
        """Whether the stage is a terminal stage."""
        return self in TERMINAL_STAGES


PIPELINE_STAGES: tuple[Stage, ...] = tuple(s for s in Stage if s is not Stage.REJECTED)
TERMINAL_STAGES: frozenset[Stage] = frozenset({Stage.REJECTED})


class InterviewStatus(str, Enum):
    """Lifecycle status of an interview."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class InterviewLocation(str, Enum):
    """Where an interview takes place."""

    OFFICE = "office"
    VIDEO = "video"
    PHONE = "phone"
    CLIENT_SITE = "client-site"


class InterviewOutcome(str, Enum):
    """Result recorded when an interview is completed."""

    PASSED = "passed"
    FAILED = "failed"
    ON_HOLD = "on_hold"


class Interval(BaseModel):
    """A half-open time interval [start, end)."""

    start: datetime = Field(..., description="Inclusive start")
    end: datetime = Field(..., description="Exclusive end")

    @model_validator(mode="after")
    def _check_order(self) -> "Interval":
        self.start = ensure_aware(self.start)
        self.end = ensure_aware(self.end)
        if self.end <= self.start:
            raise ValueError("Interval end must be after its start")
        return self

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> "Interval":
        """Build an interval from a start time and a duration in minutes."""
        start = ensure_aware(start)
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))


class ApplicationRecord(BaseModel):
    """
    A candidate's application to a job.

    Mutated only through the stage transition engine. Rejected applications
    are retained for audit.
    """

    id: str = Field(default_factory=lambda: f"app-{uuid4().hex[:12]}", description="Application identifier")
    candidate_id: str = Field(..., description="Candidate identifier")
    job_id: str = Field(..., description="Job identifier")
    stage: Stage = Field(default=Stage.APPLIED, description="Current pipeline stage")
    applied_at: datetime = Field(default_factory=_now_utc, description="When the candidate applied")
    shortlisted_at: datetime | None = Field(default=None, description="When the application was shortlisted")
    interviewed_at: datetime | None = Field(default=None, description="When the interview was passed")
    decision_at: datetime | None = Field(default=None, description="When a final decision was recorded")
    notes: str = Field(default="", description="Free-form notes")
    updated_at: datetime | None = Field(default=None, description="Last mutation time")

    @field_validator("applied_at", "shortlisted_at", "interviewed_at", "decision_at", "updated_at")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value) if value is not None else None

    @model_validator(mode="after")
    def _check_checkpoint_order(self) -> "ApplicationRecord":
        present = [t for t in (self.shortlisted_at, self.interviewed_at, self.decision_at) if t is not None]
        if any(later < earlier for earlier, later in zip(present, present[1:])):
            raise ValueError("Checkpoint timestamps must satisfy shortlisted_at <= interviewed_at <= decision_at")
        return self


class InterviewRecord(BaseModel):
    """A scheduled interview for a candidate and job."""

    id: str = Field(default_factory=lambda: f"int-{uuid4().hex[:12]}", description="Interview identifier")
    candidate_id: str = Field(..., description="Candidate identifier")
    job_id: str = Field(..., description="Job identifier")
    scheduled_at: datetime = Field(..., description="Interview start time")
    duration_minutes: int = Field(default=60, gt=0, description="Interview length in minutes")
    interviewer: str = Field(default="", description="Interviewer name")
    location: InterviewLocation = Field(default=InterviewLocation.OFFICE, description="Interview location")
    status: InterviewStatus = Field(default=InterviewStatus.SCHEDULED, description="Lifecycle status")
    result: InterviewOutcome | None = Field(default=None, description="Outcome once completed")
    notes: str = Field(default="", description="Cancellation reason or interviewer notes")
    created_at: datetime = Field(default_factory=_now_utc, description="When the interview was created")
    updated_at: datetime = Field(default_factory=_now_utc, description="Last mutation time")

    @field_validator("scheduled_at", "created_at", "updated_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def ends_at(self) -> datetime:
        """Exclusive end of the interview."""
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def interval(self) -> Interval:
        """The half-open interval the interview occupies."""
        return Interval(start=self.scheduled_at, end=self.ends_at)

    @property
    def is_active(self) -> bool:
        """Whether the interview still occupies the candidate's calendar."""
        return self.status is not InterviewStatus.CANCELLED


class ScheduleRequest(BaseModel):
    """A request to schedule one interview."""

    candidate_id: str = Field(..., description="Candidate identifier")
    job_id: str = Field(..., description="Job identifier")
    scheduled_at: datetime = Field(..., description="Requested start time")
    duration_minutes: int | None = Field(default=None, gt=0, description="Length in minutes")
    interviewer: str = Field(default="", description="Interviewer name")
    location: InterviewLocation = Field(default=InterviewLocation.OFFICE, description="Interview location")

    @field_validator("scheduled_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class AuditEntry(BaseModel):
    """Append-only record of a change to an application or interview."""

    id: str = Field(default_factory=lambda: uuid4().hex, description="Audit entry identifier")
    entity_type: Literal["application", "interview"] = Field(..., description="Kind of record changed")
    entity_id: str = Field(..., description="Identifier of the record changed")
    action: str = Field(..., description="What happened (e.g. transition, reschedule)")
    from_value: str | None = Field(default=None, description="Previous value")
    to_value: str | None = Field(default=None, description="New value")
    at: datetime = Field(default_factory=_now_utc, description="When the change happened")
    notes: str = Field(default="", description="Reason or free-form notes")


class CandidateSnapshot(BaseModel):
    """Read-only candidate details used to decorate records."""

    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    passport_number: str = ""


class JobSnapshot(BaseModel):
    """Read-only job details used to decorate records."""

    id: str
    title: str = ""
    company: str = ""


class TimeSlot(BaseModel):
    """One cell of the available-slot grid."""

    start: datetime = Field(..., description="Slot start time")
    label: str = Field(..., description="Slot start as HH:MM")
    available: bool = Field(default=True, description="False when an interview starts at this time")


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """A page of a listing."""

    items: list[T] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=12, ge=1)
    total_items: int = Field(default=0, ge=0)

    @property
    def total_pages(self) -> int:
        """Number of pages for the listing (0 when empty)."""
        return -(-self.total_items // self.page_size)


class CalendarEvent(BaseModel):
    """Interview rendered as a calendar event."""

    id: str
    title: str
    start: datetime
    end: datetime
    extended: dict[str, Any] = Field(default_factory=dict)
