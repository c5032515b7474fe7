"""Async SQLAlchemy engine and session factory.

Learn: one engine with connection pooling, one AsyncSession per request
via the get_db dependency. Pool sizing comes from settings; SQLite URLs
(used by the test suite) get SQLAlchemy's default pool instead because
they reject pool_size/max_overflow.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from comityspace.config import settings


def _pool_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_pool_options(settings.database_url),
)

# expire_on_commit=False: handlers read rows back after the service commits
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session per request, rolled back if the handler raises."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
