"""
Database session management and context managers.

Provides async session factories and a context manager for automatic
transaction handling against the delivery database.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create a session maker bound to ``engine``.

    Example:
        >>> SessionMaker = create_session_maker(engine)
        >>> async with SessionMaker() as session:
        ...     result = await session.execute(select(DeliveryRecord))
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=True,
        # Rows are converted to dicts before commit; nothing needs reloading
        expire_on_commit=False,
    )


@asynccontextmanager
async def session_scope(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Context manager for sessions with automatic transaction handling.

    This context manager:
    - Creates a new session from the given session maker
    - Automatically commits on successful completion
    - Automatically rolls back on exception

    Yields:
        AsyncSession for delivery database operations

    Raises:
        Any exception from database operations (after rollback)
    """
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
            logger.debug("Session committed successfully")
        except Exception as e:
            await session.rollback()
            logger.error(f"Session rolled back due to error: {e}")
            raise
