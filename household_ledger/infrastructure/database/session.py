"""Database session management with connection pooling"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from household_ledger.config import settings
from household_ledger.domain.exceptions import StoreError
from household_ledger.infrastructure.database.models import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    """Create an async engine; pool options apply to server databases only"""
    url = database_url or settings.database_url
    if not url.startswith("sqlite"):
        # Recycle after 1 hour to avoid stale connections
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 10)
        kwargs.setdefault("pool_recycle", 3600)
    return create_async_engine(url, echo=settings.database_echo, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory, created lazily from settings"""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = build_engine()
        _session_factory = build_session_factory(_engine)
    return _session_factory


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession],
    failure_message: str,
) -> AsyncIterator[AsyncSession]:
    """
    One database transaction: commits on success, rolls back on any error.

    Store failures are logged and re-raised as StoreError(failure_message)
    with the original cause chained; domain errors pass through unchanged.
    """
    try:
        async with session_factory() as db:
            async with db.begin():
                yield db
    except SQLAlchemyError as e:
        logger.exception(failure_message)
        raise StoreError(failure_message) from e
