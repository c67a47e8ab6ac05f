"""
In-process change feed.

The record store publishes one ``ChangeEvent`` per committed write. Handlers
registered for a table receive those events in commit order, in registration
order. ``ChangeFeedSubscriber`` builds on the feed to keep aggregate views and
notices in step with the store.
"""

import inspect
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from delivery_ops.shared.exceptions import SubscriptionError
from delivery_ops.shared.metrics import metrics_collector
from delivery_ops.shared.models import ChangeEvent

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], Awaitable[None] | None]


@dataclass(frozen=True)
class _Registration:
    registration_id: int
    tables: frozenset[str]
    handler: ChangeHandler


class SubscriptionHandle:
    """
    Handle for one change feed registration.

    ``unsubscribe()`` must be called exactly once. The handle can also be used
    as an async context manager, which unsubscribes on exit if still active.
    """

    def __init__(self, feed: "ChangeFeed", registration_id: int, tables: frozenset[str]):
        self._feed = feed
        self._registration_id = registration_id
        self.tables = tables
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            raise SubscriptionError(
                f"Subscription {self._registration_id} was already unsubscribed"
            )
        self._active = False
        self._feed._unregister(self._registration_id)

    async def __aenter__(self) -> "SubscriptionHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._active:
            self.unsubscribe()

    def __repr__(self) -> str:
        return (
            f"<SubscriptionHandle(id={self._registration_id}, "
            f"tables={sorted(self.tables)}, active={self._active})>"
        )


class ChangeFeed:
    """
    Broker between the record store and change handlers.

    Events are queued in commit order by ``enqueue`` and delivered by
    ``drain``. A drain that starts while another is delivering returns at
    once; the running drain delivers the queued event before it finishes.
    This keeps handlers that write to the store from deadlocking the feed.
    """

    def __init__(self):
        self._registrations: dict[int, _Registration] = {}
        self._ids = itertools.count(1)
        self._pending: deque[ChangeEvent] = deque()
        self._dispatching = False

    @property
    def subscription_count(self) -> int:
        return len(self._registrations)

    def register(self, tables: Iterable[str], handler: ChangeHandler) -> SubscriptionHandle:
        """
        Register ``handler`` for changes on ``tables``.

        Raises:
            SubscriptionError: If no table is given
        """
        watched = frozenset(tables)
        if not watched:
            raise SubscriptionError("A change subscription needs at least one table")

        registration = _Registration(next(self._ids), watched, handler)
        self._registrations[registration.registration_id] = registration
        metrics_collector.update_subscription_count(self.subscription_count)

        logger.debug(
            f"Registered change handler {registration.registration_id} "
            f"for tables {sorted(watched)}"
        )
        return SubscriptionHandle(self, registration.registration_id, watched)

    def _unregister(self, registration_id: int) -> None:
        self._registrations.pop(registration_id, None)
        metrics_collector.update_subscription_count(self.subscription_count)
        logger.debug(f"Unregistered change handler {registration_id}")

    def enqueue(self, event: ChangeEvent) -> None:
        """Queue a committed change for delivery."""
        self._pending.append(event)

    async def drain(self) -> None:
        """Deliver queued events to matching handlers."""
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                await self._dispatch(self._pending.popleft())
        finally:
            self._dispatching = False

    async def publish(self, event: ChangeEvent) -> None:
        """Queue ``event`` and deliver it."""
        self.enqueue(event)
        await self.drain()

    async def _dispatch(self, event: ChangeEvent) -> None:
        metrics_collector.record_change_event(event.table, event.event_kind.value)

        # Snapshot: handlers may unsubscribe while we iterate
        for registration in list(self._registrations.values()):
            if event.table not in registration.tables:
                continue
            if registration.registration_id not in self._registrations:
                continue
            try:
                result = registration.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Change handler {registration.registration_id} failed on "
                    f"{event.event_kind.value} of '{event.table}': {e}",
                    exc_info=True,
                )


class ChangeFeedSubscriber:
    """
    Keeps aggregate views consistent with the record store.

    On every change to a watched table it invalidates the aggregates that read
    the table, posts a "Delivery Updated" notice when a status changed, then
    calls the optional ``on_change`` callback.
    """

    def __init__(self, feed: ChangeFeed, cache=None, notices=None):
        self._feed = feed
        self._cache = cache
        self._notices = notices

    def subscribe(
        self,
        tables: Iterable[str],
        on_change: ChangeHandler | None = None,
    ) -> SubscriptionHandle:
        async def handle(event: ChangeEvent) -> None:
            if self._cache is not None:
                self._cache.invalidate_table(event.table)

            if self._notices is not None and event.status_changed:
                self._notices.post(
                    "Delivery Updated",
                    f"Delivery status changed to {event.new_row.get('status')}",
                )

            if on_change is not None:
                result = on_change(event)
                if inspect.isawaitable(result):
                    await result

        return self._feed.register(tables, handle)
