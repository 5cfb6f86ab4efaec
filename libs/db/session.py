from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.errors import ConcurrentModification
from libs.db.config import AsyncSessionLocal

# Postgres SQLSTATEs for serialization failure, deadlock, lock not available
_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def is_concurrency_conflict(exc: DBAPIError) -> bool:
    """True when the driver error means a competing transaction won."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a use case as one transaction: commit on success, roll back on error.

    Storage-level conflicts surface as ``ConcurrentModification`` so callers
    can retry.
    """
    try:
        yield db
        await db.commit()
    except DBAPIError as exc:
        await db.rollback()
        if is_concurrency_conflict(exc):
            raise ConcurrentModification() from exc
        raise
    except Exception:
        await db.rollback()
        raise
