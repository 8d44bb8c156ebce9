"""
Async engine and session factory for the durable store.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from recruiting_pipeline.config import get_settings
from recruiting_pipeline.db.models import Base

logger = logging.getLogger(__name__)


def create_engine(url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    Args:
        url: Database URL. Defaults to the configured database_url.
        echo: Log emitted SQL.

    Returns:
        AsyncEngine bound to the database.
    """
    url = url or str(get_settings().database_url)
    if url.startswith("sqlite") and ":memory:" in url:
        # A single shared connection keeps the in-memory database alive.
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory that keeps objects usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")
