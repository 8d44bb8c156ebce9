"""
Database module for persistence.

Provides SQLAlchemy models and repository pattern for
application, interview, and audit persistence.
"""

from recruiting_pipeline.db.models import (
    ApplicationModel,
    AuditEntryModel,
    Base,
    InterviewModel,
)
from recruiting_pipeline.db.repository import (
    ApplicationRepository,
    AuditRepository,
    InMemoryApplicationRepository,
    InMemoryAuditRepository,
    InMemoryInterviewRepository,
    InterviewRepository,
    SqlApplicationRepository,
    SqlAuditRepository,
    SqlInterviewRepository,
)
from recruiting_pipeline.db.session import create_engine, create_session_factory, init_models

__all__ = [
    "Base",
    "ApplicationModel",
    "InterviewModel",
    "AuditEntryModel",
    "ApplicationRepository",
    "InterviewRepository",
    "AuditRepository",
    "InMemoryApplicationRepository",
    "InMemoryInterviewRepository",
    "InMemoryAuditRepository",
    "SqlApplicationRepository",
    "SqlInterviewRepository",
    "SqlAuditRepository",
    "create_engine",
    "create_session_factory",
    "init_models",
]
