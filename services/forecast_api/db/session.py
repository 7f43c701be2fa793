"""
Session helper used by the repositories.

Every SQLAlchemy failure leaves the storage layer as PersistenceError, so the
engine and the HTTP layer only ever see the domain taxonomy.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.forecast_api.errors import PersistenceError


@asynccontextmanager
async def persistence_scope(
    session_factory: async_sessionmaker,
    operation: str,
) -> AsyncIterator[AsyncSession]:
    """Open a session; translate driver/ORM failures into PersistenceError."""
    try:
        async with session_factory() as session:
            yield session
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{operation} failed: {exc.__class__.__name__}") from exc
