"""
Short-lived user-facing notices.

Notices ("Status Updated", "Delivery Updated", "Update Failed", ...) expire
after a configurable TTL. Storage is a cachetools TTLCache so expiry needs no
background task.
"""

import itertools
import logging
import time
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from cachetools import TTLCache
from pydantic import BaseModel, Field

from delivery_ops.db.models.base import utc_now

logger = logging.getLogger(__name__)


class NoticeVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Notice(BaseModel):
    """A notice shown to dashboard users."""

    id: int
    title: str
    message: str = ""
    variant: NoticeVariant = NoticeVariant.DEFAULT
    created_at: datetime = Field(default_factory=utc_now)


class NoticeBoard:
    """Holds recent notices until they expire."""

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        max_notices: int = 100,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._notices: TTLCache = TTLCache(
            maxsize=max_notices, ttl=ttl_seconds, timer=timer
        )
        self._ids = itertools.count(1)

    def post(
        self,
        title: str,
        message: str = "",
        variant: NoticeVariant | str = NoticeVariant.DEFAULT,
    ) -> Notice:
        notice = Notice(
            id=next(self._ids),
            title=title,
            message=message,
            variant=NoticeVariant(variant),
        )
        self._notices[notice.id] = notice
        logger.debug(f"Posted notice {notice.id}: {title}")
        return notice

    def current(self) -> list[Notice]:
        """Return live notices, oldest first."""
        self._notices.expire()
        return sorted(self._notices.values(), key=lambda n: n.id)

    def clear(self) -> None:
        self._notices.clear()

    def __len__(self) -> int:
        self._notices.expire()
        return len(self._notices)
