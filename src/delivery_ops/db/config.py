"""
Database configuration constants and settings.

Defines the default path and the SQLite pragmas applied to every connection
of the delivery record store.
"""


class DatabaseConfig:
    """Configuration for the SQLite record store."""

    DEFAULT_DB_PATH: str = "data/deliveries.db"
    MEMORY_DB_PATH: str = ":memory:"

    # SQLite pragmas applied on each connection via event listeners
    SQLITE_PRAGMAS: dict[str, str | int] = {
        # Write-Ahead Logging lets dashboard reads run alongside simulator writes
        "journal_mode": "WAL",
        "synchronous": "NORMAL",
        # Deliveries reference subscriptions; reset order depends on this
        "foreign_keys": 1,
        "temp_store": "MEMORY",
        # Negative value = size in KB (16MB cache)
        "cache_size": -16000,
        # Wait up to 5 seconds when database is locked
        "busy_timeout": 5000,
    }

    ECHO_SQL: bool = False

    @classmethod
    def is_memory_path(cls, db_path: str) -> bool:
        """Return True if the path designates an in-memory database."""
        return db_path == cls.MEMORY_DB_PATH or db_path.startswith("file::memory:")
