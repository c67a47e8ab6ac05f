"""
Base class for all SQLAlchemy ORM models.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy.orm import DeclarativeBase


def new_id() -> str:
    """Generate a new row identifier."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (SQLite stores no offset)."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Uses SQLAlchemy 2.0 declarative base pattern. All record store tables
    inherit from this class and share one metadata object.
    """

    def to_dict(self) -> dict:
        """Return the row as a plain column-name -> value mapping."""
        return {
            column.name: getattr(self, column.key)
            for column in self.__table__.columns
        }
