"""
Delivery record store.

Wraps the SQLAlchemy tables behind a small table-name keyed interface
(insert, get, select, count, conditional update, whole-table delete) and
publishes a ChangeEvent to the change feed after every committed write.

Operations are serialized on one asyncio lock: the SQLite engine shares a
single connection, and events must be queued in commit order.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from delivery_ops.db.models import (
    AgentAssignmentRecord,
    AreaRecord,
    Base,
    DeliveryRecord,
    InventoryRecord,
    ProductRecord,
    ProfileRecord,
    SubscriptionRecord,
    UserRoleRecord,
    utc_now,
)
from delivery_ops.db.session import create_session_maker, session_scope
from delivery_ops.realtime.change_feed import ChangeFeed, ChangeHandler, SubscriptionHandle
from delivery_ops.shared.exceptions import StoreError
from delivery_ops.shared.models import ChangeEvent, ChangeEventKind

logger = logging.getLogger(__name__)

TABLE_MODELS: dict[str, type[Base]] = {
    "deliveries": DeliveryRecord,
    "subscriptions": SubscriptionRecord,
    "areas": AreaRecord,
    "products": ProductRecord,
    "profiles": ProfileRecord,
    "user_roles": UserRoleRecord,
    "agent_assignments": AgentAssignmentRecord,
    "inventory": InventoryRecord,
}

Filters = dict[str, Any]
Ordering = Sequence[tuple[str, str]]


class RecordStore:
    """Table-keyed async access to the delivery database."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        change_feed: ChangeFeed | None = None,
    ):
        self._session_maker = session_maker
        self.change_feed = change_feed or ChangeFeed()
        self._lock = asyncio.Lock()

    @classmethod
    def from_engine(
        cls, engine: AsyncEngine, change_feed: ChangeFeed | None = None
    ) -> "RecordStore":
        return cls(create_session_maker(engine), change_feed)

    # ================================
    # HELPERS
    # ================================

    @staticmethod
    def _model(table: str, operation: str) -> type[Base]:
        model = TABLE_MODELS.get(table)
        if model is None:
            raise StoreError("unknown table", operation=operation, table=table)
        return model

    @staticmethod
    def _column(model: type[Base], column: str, table: str, operation: str):
        if column not in model.__table__.columns:
            raise StoreError(
                f"unknown column '{column}'", operation=operation, table=table
            )
        return getattr(model, column)

    def _conditions(self, model, table: str, filters: Filters | None, operation: str):
        conditions = []
        for column, value in (filters or {}).items():
            attr = self._column(model, column, table, operation)
            if isinstance(value, (list, tuple, set, frozenset)):
                conditions.append(attr.in_(list(value)))
            elif value is None:
                conditions.append(attr.is_(None))
            else:
                conditions.append(attr == value)
        return conditions

    def _emit(
        self,
        kind: ChangeEventKind,
        table: str,
        old_row: dict | None = None,
        new_row: dict | None = None,
    ) -> None:
        self.change_feed.enqueue(
            ChangeEvent(
                event_kind=kind,
                table=table,
                old_row=old_row,
                new_row=new_row,
                committed_at=utc_now(),
            )
        )

    # ================================
    # READS
    # ================================

    async def get(self, table: str, record_id: str) -> dict[str, Any] | None:
        """Point read by primary key."""
        model = self._model(table, "get")
        async with self._lock:
            try:
                async with session_scope(self._session_maker) as session:
                    record = await session.get(model, record_id)
                    return record.to_dict() if record is not None else None
            except SQLAlchemyError as e:
                raise StoreError(str(e), operation="get", table=table, original_error=e) from e

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Ordering | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Filtered range read.

        Args:
            table: Table name
            filters: Column -> value equality filters; a list/tuple/set value
                means "IN", None means "IS NULL"
            order: Sequence of (column, "asc" | "desc")
            limit: Maximum number of rows
        """
        model = self._model(table, "select")
        stmt = select(model).where(*self._conditions(model, table, filters, "select"))

        for column, direction in order or ():
            attr = self._column(model, column, table, "select")
            stmt = stmt.order_by(attr.desc() if direction == "desc" else attr.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._lock:
            try:
                async with session_scope(self._session_maker) as session:
                    result = await session.execute(stmt)
                    return [record.to_dict() for record in result.scalars().all()]
            except SQLAlchemyError as e:
                raise StoreError(
                    str(e), operation="select", table=table, original_error=e
                ) from e

    async def count(self, table: str, filters: Filters | None = None) -> int:
        """Count rows matching ``filters``."""
        model = self._model(table, "count")
        stmt = (
            select(func.count())
            .select_from(model)
            .where(*self._conditions(model, table, filters, "count"))
        )

        async with self._lock:
            try:
                async with session_scope(self._session_maker) as session:
                    return (await session.execute(stmt)).scalar_one()
            except SQLAlchemyError as e:
                raise StoreError(
                    str(e), operation="count", table=table, original_error=e
                ) from e

    # ================================
    # WRITES
    # ================================

    async def insert(
        self, table: str, rows: Iterable[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """
        Insert rows in one transaction.

        Returns:
            The inserted rows with generated ids and timestamps
        """
        model = self._model(table, "insert")
        rows = list(rows)
        if not rows:
            return []

        async with self._lock:
            try:
                async with session_scope(self._session_maker) as session:
                    records = [model(**row) for row in rows]
                    session.add_all(records)
                    await session.flush()
                    inserted = [record.to_dict() for record in records]
            except SQLAlchemyError as e:
                raise StoreError(
                    str(e), operation="insert", table=table, original_error=e
                ) from e

            for row in inserted:
                self._emit(ChangeEventKind.INSERT, table, new_row=row)

        logger.debug(f"Inserted {len(inserted)} rows into '{table}'")
        await self.change_feed.drain()
        return inserted

    async def update(
        self,
        table: str,
        record_id: str,
        patch: dict[str, Any],
        expected: Filters | None = None,
    ) -> dict[str, Any] | None:
        """
        Conditional partial update.

        The UPDATE only matches when the row exists and every ``expected``
        column still holds the given value.

        Returns:
            The updated row, or None when nothing matched
        """
        model = self._model(table, "update")
        conditions = [model.id == record_id] + self._conditions(
            model, table, expected, "update"
        )
        values = dict(patch)
        for column in values:
            self._column(model, column, table, "update")
        if "updated_at" in model.__table__.columns:
            values["updated_at"] = utc_now()

        async with self._lock:
            try:
                async with session_scope(self._session_maker) as session:
                    record = (
                        await session.execute(select(model).where(*conditions))
                    ).scalar_one_or_none()
                    if record is None:
                        return None
                    old_row = record.to_dict()

                    result = await session.execute(
                        sa_update(model)
                        .where(*conditions)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        return None

                    await session.refresh(record)
                    new_row = record.to_dict()
            except SQLAlchemyError as e:
                raise StoreError(
                    str(e), operation="update", table=table, original_error=e
                ) from e

            self._emit(ChangeEventKind.UPDATE, table, old_row=old_row, new_row=new_row)

        await self.change_feed.drain()
        return new_row

    async def delete_all(self, table: str) -> int:
        """
        Delete every row of ``table``.

        Publishes a single table-level DELETE event when rows were removed.

        Returns:
            Number of rows deleted
        """
        model = self._model(table, "delete_all")

        async with self._lock:
            try:
                async with session_scope(self._session_maker) as session:
                    result = await session.execute(sa_delete(model))
                    deleted = result.rowcount or 0
            except SQLAlchemyError as e:
                raise StoreError(
                    str(e), operation="delete_all", table=table, original_error=e
                ) from e

            if deleted:
                self._emit(ChangeEventKind.DELETE, table)

        logger.info(f"Deleted {deleted} rows from '{table}'")
        await self.change_feed.drain()
        return deleted

    # ================================
    # CHANGE NOTIFICATIONS
    # ================================

    def subscribe_to_changes(
        self, tables: Iterable[str], handler: ChangeHandler
    ) -> SubscriptionHandle:
        """Register ``handler`` for committed writes on ``tables``."""
        tables = [tables] if isinstance(tables, str) else list(tables)
        for table in tables:
            self._model(table, "subscribe")
        return self.change_feed.register(tables, handler)
