"""
Snipply Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory and declarative base.
How:   One engine with a connection pool; each request gets its own
       AsyncSession (see snipply.dependencies.get_storage).
Who:   Used by the storage dependency, the health check, Alembic and the
       startup table bootstrap.

Connection Pooling:
    pool_size=20 / max_overflow=10 for PostgreSQL (at most 30 connections).
    SQLite URLs (tests, local experiments) use SQLAlchemy's default pool for
    the dialect, which rejects the sizing arguments.
"""

import logging
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from snipply.config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.uses_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine & Session Factory ──────────────────────────────────────────────
engine: AsyncEngine = create_async_engine(settings.database_url, **_engine_options())

# expire_on_commit=False keeps attributes readable after commit; lazy loads
# are not available on AsyncSession.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
@retry(
    stop=stop_after_attempt(settings.db_connect_attempts),
    wait=wait_exponential_jitter(initial=1, max=settings.db_connect_max_wait),
    retry=retry_if_exception_type((OperationalError, OSError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def create_tables(bind: AsyncEngine = engine) -> None:
    """
    Create every table known to `Base.metadata` (idempotent).

    Retries connection failures with exponential backoff so a freshly
    started database container has time to accept connections.
    """
    # Registers the models on Base.metadata
    from snipply import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured (%d tables)", len(Base.metadata.tables))


async def check_connection() -> bool:
    """Run `SELECT 1`; used by the health endpoint."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database unreachable: %s", str(e))
        return False


async def dispose_engine() -> None:
    """Close all pooled connections (application shutdown)."""
    await engine.dispose()
