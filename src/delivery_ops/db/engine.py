"""
Database engine creation and management.

Provides async SQLAlchemy engines with proper SQLite configuration,
pragma enforcement, and connection event handling.
"""

import logging
from pathlib import Path

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from delivery_ops.db.config import DatabaseConfig

logger = logging.getLogger(__name__)

# Module-level engine cache
_engine: AsyncEngine | None = None


def create_engine(
    db_path: str,
    pragmas: dict[str, str | int] | None = None,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine for SQLite with proper configuration.

    This function creates an engine with:
    - aiosqlite async driver
    - StaticPool (one shared connection, which also keeps an in-memory
      database alive for the lifetime of the engine)
    - PRAGMA enforcement via connection event listeners

    Args:
        db_path: Path to SQLite database file, or ':memory:'
        pragmas: PRAGMA settings to apply on each connection.
                If None, uses DatabaseConfig.SQLITE_PRAGMAS
        echo: If True, log all SQL queries

    Returns:
        Configured AsyncEngine instance
    """
    if pragmas is None:
        pragmas = DatabaseConfig.SQLITE_PRAGMAS

    if not DatabaseConfig.is_memory_path(db_path):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        poolclass=StaticPool,
        echo=echo,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Set SQLite PRAGMAs on each new connection."""
        cursor = dbapi_connection.cursor()
        try:
            for pragma, value in pragmas.items():
                cursor.execute(f"PRAGMA {pragma}={value}")
            logger.debug(f"Applied {len(pragmas)} PRAGMAs to connection for {db_path}")
        except Exception as e:
            logger.error(f"Failed to apply PRAGMAs to {db_path}: {e}")
            raise
        finally:
            cursor.close()

    logger.info(f"Created async engine for database: {db_path}")
    return engine


def get_engine(db_path: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """
    Get or create the record store engine (singleton).

    Args:
        db_path: Database path used on first creation (default from DatabaseConfig)
        echo: SQL echo flag used on first creation

    Returns:
        AsyncEngine for the delivery database
    """
    global _engine

    if _engine is None:
        _engine = create_engine(
            db_path=db_path or DatabaseConfig.DEFAULT_DB_PATH,
            echo=DatabaseConfig.ECHO_SQL if echo is None else echo,
        )
        logger.info("Initialized delivery database engine")

    return _engine


async def dispose_engine() -> None:
    """Dispose the cached engine and close its connection."""
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Disposed delivery database engine")


async def check_engine_health(engine: AsyncEngine) -> bool:
    """Return True if a trivial query succeeds on the engine."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Engine health check failed: {e}")
        return False
