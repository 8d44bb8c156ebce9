"""
Pipeline module: interview scheduling, stage transitions, and workflow views.
"""

from recruiting_pipeline.pipeline.analytics import (
    AnalyticsAggregator,
    InterviewStatistics,
    PipelineAnalytics,
)
from recruiting_pipeline.pipeline.conflicts import ConflictDetector, find_conflicts, intervals_overlap
from recruiting_pipeline.pipeline.errors import (
    BulkOutcome,
    ConflictError,
    DependencyFailure,
    DependencyFailureError,
    InvalidTransition,
    RepositoryError,
)
from recruiting_pipeline.pipeline.scheduler import InterviewScheduler
from recruiting_pipeline.pipeline.schemas import (
    PIPELINE_STAGES,
    ApplicationRecord,
    AuditEntry,
    InterviewLocation,
    InterviewOutcome,
    InterviewRecord,
    InterviewStatus,
    ScheduleRequest,
    Stage,
    TimeSlot,
)
from recruiting_pipeline.pipeline.transitions import StageTransitionEngine
from recruiting_pipeline.pipeline.workflow import (
    CandidateRow,
    JobGroup,
    ViewMode,
    WorkflowOrchestrator,
    WorkflowView,
)

__all__ = [
    "AnalyticsAggregator",
    "ApplicationRecord",
    "AuditEntry",
    "BulkOutcome",
    "CandidateRow",
    "ConflictDetector",
    "ConflictError",
    "DependencyFailure",
    "DependencyFailureError",
    "InterviewLocation",
    "InterviewOutcome",
    "InterviewRecord",
    "InterviewScheduler",
    "InterviewStatistics",
    "InterviewStatus",
    "InvalidTransition",
    "JobGroup",
    "PIPELINE_STAGES",
    "PipelineAnalytics",
    "RepositoryError",
    "ScheduleRequest",
    "Stage",
    "StageTransitionEngine",
    "TimeSlot",
    "ViewMode",
    "WorkflowOrchestrator",
    "WorkflowView",
    "find_conflicts",
    "intervals_overlap",
]
