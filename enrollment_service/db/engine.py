"""PostgreSQL access: engine, sessions, lifespan.

DATABASE_URL set   → asyncpg engine + one AsyncSession per request.  The
                     Pg repos of a request share that session, so an
                     enrollment, its counter bump and its empty progress
                     record commit (or roll back) together.
DATABASE_URL unset → ``engine`` and ``async_session_factory`` are None and
                     api/dependencies.py hands out the in-memory repos.

Pool wait, connect and statement execution are all capped at
STORAGE_TIMEOUT_SECONDS.  A stalled database becomes an error the API
maps to 503, never a hung request.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from enrollment_service.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the tables in enrollment_service/db/tables.py."""


def _build_engine(url: str) -> AsyncEngine:
    timeout = SETTINGS.storage_timeout_seconds
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_timeout=timeout,
        # A connection killed by a database restart is replaced on checkout
        # instead of failing the first statement of some request.
        pool_pre_ping=True,
        connect_args={
            "timeout": timeout,
            "command_timeout": timeout,
            "server_settings": {"application_name": "enrollment-service"},
        },
    )


if SETTINGS.database_url:
    engine: AsyncEngine | None = _build_engine(SETTINGS.database_url)
    async_session_factory: async_sessionmaker[AsyncSession] | None = (
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )
else:
    engine = None
    async_session_factory = None


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit when the handler returns, roll back if it raises."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug("Session rolled back: %s", type(e).__name__)
            raise


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured; enrollments live in memory")
        yield
        return

    logger.info(
        "Database engine ready: %s", engine.url.render_as_string(hide_password=True)
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
