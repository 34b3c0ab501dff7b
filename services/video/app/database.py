"""Process-wide async session factory for the videos database."""
import logging
from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.database.postgres import get_async_session_factory

logger = logging.getLogger(__name__)

_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db(database_url: str) -> None:
    global _session_factory
    _session_factory = get_async_session_factory(database_url, expire_on_commit=False)
    logger.info(
        "Video database configured: %s",
        make_url(database_url).render_as_string(hide_password=True),
    )


async def close_db() -> None:
    """Dispose the engine pool; safe to call when init_db never ran."""
    global _session_factory
    if _session_factory is None:
        return
    await _session_factory.kw["bind"].dispose()
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized")
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: commit when the handler returns, roll back on error.

    A failed upload raises before the record is written, so the rollback
    leaves ``video_url`` as it was.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
