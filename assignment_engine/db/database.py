"""
Database Module

Async SQLAlchemy engine, session factory and the declarative Base
shared by every model.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from assignment_engine.core.config import settings
from assignment_engine.core.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _engine_kwargs() -> dict:
    kwargs = {
        "echo": settings.SQLALCHEMY_ECHO,
        "pool_pre_ping": True,
    }
    # SQLite (tests, local tooling) does not take pool sizing options
    if not settings.DATABASE_URL.startswith("sqlite"):
        if settings.DB_POOL_MIN_SIZE:
            kwargs["pool_size"] = settings.DB_POOL_MIN_SIZE
        if settings.DB_POOL_MAX_SIZE:
            kwargs["max_overflow"] = max(
                0, settings.DB_POOL_MAX_SIZE - (settings.DB_POOL_MIN_SIZE or 5)
            )
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection function for getting a database session.

    The session is always closed; uncommitted work is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Commit everything done inside the block, or nothing.

    Connection-level failures surface as StorageUnavailable so callers
    never see a raw driver error.
    """
    try:
        yield session
        await session.commit()
    except (OperationalError, InterfaceError) as e:
        await session.rollback()
        logger.error(f"Database unavailable, transaction rolled back: {e}")
        raise StorageUnavailable() from e
    except Exception:
        await session.rollback()
        raise


async def check_db_connection() -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
