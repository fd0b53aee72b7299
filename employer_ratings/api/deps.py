"""API dependencies: DB session per request and the session factory for batch runs."""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from employer_ratings.database import async_session


# ── Database session ─────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session per request, commit on success, rollback on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """Batch endpoints open one session per organization."""
    return async_session


def get_actor(request: Request) -> str:
    """Caller identity for the audit trail; set by the fronting gateway."""
    return request.headers.get("X-Actor", "api")
