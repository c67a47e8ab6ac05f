"""
Database connection and session management for the delivery record store.

Usage:
    from delivery_ops.db import create_session_maker, init_db

    engine = await init_db(":memory:")
    session_maker = create_session_maker(engine)
"""

from delivery_ops.db.config import DatabaseConfig
from delivery_ops.db.engine import (
    check_engine_health,
    create_engine,
    dispose_engine,
    get_engine,
)
from delivery_ops.db.init import create_all_tables, drop_all_tables, init_db
from delivery_ops.db.session import create_session_maker, session_scope

__all__ = [
    "DatabaseConfig",
    "check_engine_health",
    "create_engine",
    "dispose_engine",
    "get_engine",
    "create_all_tables",
    "drop_all_tables",
    "init_db",
    "create_session_maker",
    "session_scope",
]
