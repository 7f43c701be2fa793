"""
AsyncEngine factory, schema bootstrap and standalone session context manager.

NullPool because PgBouncer owns connection pooling in deployed environments;
SA should not maintain its own pool on top.
"""

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from services.forecast_api.config import settings
from services.forecast_api.db.models import Base


def create_engine() -> AsyncEngine:
    """Create the async engine, forcing the asyncpg driver."""
    url = settings.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return create_async_engine(
        url,
        poolclass=NullPool,
        echo=settings.debug and settings.environment == "development",
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: repositories hand ORM rows back to callers after
    # the session has closed.
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing tables. Idempotent; runs at every startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def standalone_session_factory():
    """
    For standalone entry points (the refresh job) that run outside FastAPI.
    Handles engine lifecycle to prevent connection leaks with NullPool.
    """
    engine = create_engine()
    try:
        await create_schema(engine)
        yield create_session_factory(engine)
    finally:
        await engine.dispose()
