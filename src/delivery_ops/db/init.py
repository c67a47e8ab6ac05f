"""
Database initialization and schema management.

Provides utilities for creating the record store tables and for
initial setup and teardown.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from delivery_ops.db.engine import check_engine_health, get_engine
from delivery_ops.db.models import Base

logger = logging.getLogger(__name__)


async def create_all_tables(engine: AsyncEngine) -> None:
    """
    Create all record store tables on ``engine``.

    Note:
        This function uses SQLAlchemy's create_all() which is idempotent.
        It will not recreate existing tables.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Created all tables for engine: {engine.url}")


async def drop_all_tables(engine: AsyncEngine) -> None:
    """
    Drop all record store tables on ``engine``.

    WARNING: This is a destructive operation that will delete all data!
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning(f"Dropped all tables for engine: {engine.url}")


async def init_db(db_path: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """
    Initialize the delivery database.

    Creates the engine (if needed), creates tables and verifies connectivity.

    Returns:
        The initialized AsyncEngine

    Raises:
        RuntimeError: If the database is not reachable after initialization
    """
    engine = get_engine(db_path=db_path, echo=echo)
    await create_all_tables(engine)

    if not await check_engine_health(engine):
        raise RuntimeError(f"Delivery database is not reachable: {engine.url}")

    logger.info("Delivery database initialized")
    return engine
