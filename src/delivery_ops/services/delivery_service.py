"""
Delivery operations exposed to dashboards.

``DeliveryService`` is the single entry point the HTTP layer uses: cached
role/agent/dashboard reads, manual agent transitions, and control of the
simulation scheduler. It also owns the change feed subscription that keeps
the aggregate cache consistent with the record store.
"""

import logging
from collections.abc import AsyncIterator, Callable
from datetime import date, datetime

from delivery_ops.config.models import ViewConfig
from delivery_ops.db.models.base import utc_now
from delivery_ops.lifecycle.states import DeliveryStatus
from delivery_ops.lifecycle.transitions import apply_transition, transition_patch
from delivery_ops.realtime.change_feed import ChangeFeedSubscriber, SubscriptionHandle
from delivery_ops.realtime.notices import NoticeBoard, NoticeVariant
from delivery_ops.services.record_store import RecordStore
from delivery_ops.shared.exceptions import (
    DeliveryOpsException,
    InvalidTransition,
    NotFound,
)
from delivery_ops.shared.metrics import metrics_collector
from delivery_ops.shared.models import AgentTodayDeliveries, DashboardTotals, Delivery
from delivery_ops.simulation.scheduler import SimulationScheduler
from delivery_ops.views.aggregate_cache import AggregateKey, AggregateViewCache
from delivery_ops.views.queries import (
    AGENT_TODAY_SHAPE,
    AGENT_TODAY_TABLES,
    DASHBOARD_TABLES,
    DASHBOARD_TOTALS_SHAPE,
    ROLE_DELIVERIES_SHAPE,
    ROLE_DELIVERY_TABLES,
    fetch_agent_today,
    fetch_dashboard_totals,
    fetch_role_deliveries,
)

logger = logging.getLogger(__name__)

WATCHED_TABLES = ("deliveries", "subscriptions", "areas")


class RoleDeliveries:
    """
    Lazy, restartable sequence of the deliveries a role may see.

    Nothing is read until iteration starts, and every new iteration reads
    through the aggregate cache again, so it reflects the latest changes.
    """

    def __init__(self, service: "DeliveryService", role: str | None, user_id: str | None):
        self._service = service
        self.role = role
        self.user_id = user_id

    async def fetch(self) -> list[Delivery]:
        return await self._service._role_deliveries(self.role, self.user_id)

    async def _iterate(self) -> AsyncIterator[Delivery]:
        for delivery in await self.fetch():
            yield delivery

    def __aiter__(self) -> AsyncIterator[Delivery]:
        return self._iterate()


class DeliveryService:
    """Operations on deliveries for admins, agents and customers."""

    def __init__(
        self,
        store: RecordStore,
        scheduler: SimulationScheduler,
        cache: AggregateViewCache | None = None,
        notices: NoticeBoard | None = None,
        views: ViewConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.scheduler = scheduler
        self.cache = cache or AggregateViewCache()
        self.notices = notices or NoticeBoard()
        self.views = views or ViewConfig()
        self._clock = clock

        self._subscriber = ChangeFeedSubscriber(store.change_feed, self.cache, self.notices)
        self._subscription: SubscriptionHandle | None = None

    def _today(self) -> date:
        return self._clock().date()

    # ================================
    # CHANGE TRACKING
    # ================================

    def start_change_tracking(self) -> None:
        """Invalidate cached aggregates whenever a watched table changes."""
        if self._subscription is None:
            self._subscription = self._subscriber.subscribe(WATCHED_TABLES)
            logger.info(f"Tracking changes on {', '.join(WATCHED_TABLES)}")

    def stop_change_tracking(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # ================================
    # READS
    # ================================

    def get_deliveries_for_role(self, role: str | None, user_id: str | None) -> RoleDeliveries:
        return RoleDeliveries(self, role, user_id)

    async def _role_deliveries(self, role: str | None, user_id: str | None) -> list[Delivery]:
        key = AggregateKey(ROLE_DELIVERIES_SHAPE, (role, user_id))
        return await self.cache.get_or_compute(
            key,
            lambda: fetch_role_deliveries(
                self.store, role, user_id, limit=self.views.recent_limit
            ),
            tables=ROLE_DELIVERY_TABLES,
            poll_interval=self.views.delivery_list_poll_seconds,
        )

    async def get_agent_today_deliveries(self, agent_id: str) -> AgentTodayDeliveries:
        today = self._today()
        key = AggregateKey(AGENT_TODAY_SHAPE, (agent_id, today))
        return await self.cache.get_or_compute(
            key,
            lambda: fetch_agent_today(self.store, agent_id, today),
            tables=AGENT_TODAY_TABLES,
            poll_interval=self.views.agent_list_poll_seconds,
        )

    async def get_dashboard_totals(self) -> DashboardTotals:
        today = self._today()
        key = AggregateKey(DASHBOARD_TOTALS_SHAPE, (today,))
        return await self.cache.get_or_compute(
            key,
            lambda: fetch_dashboard_totals(self.store, today),
            tables=DASHBOARD_TABLES,
            poll_interval=self.views.dashboard_poll_seconds,
        )

    # ================================
    # AGENT ACTIONS
    # ================================

    async def mark_delivered(self, delivery_id: str) -> Delivery:
        return await self._resolve(delivery_id, DeliveryStatus.DELIVERED)

    async def mark_missed(self, delivery_id: str, reason: str | None = None) -> Delivery:
        return await self._resolve(delivery_id, DeliveryStatus.MISSED, reason)

    async def _resolve(
        self,
        delivery_id: str,
        target: DeliveryStatus,
        reason: str | None = None,
    ) -> Delivery:
        try:
            delivery = await self._transition(delivery_id, target, reason)
        except DeliveryOpsException as e:
            if isinstance(e, InvalidTransition):
                metrics_collector.record_transition_rejected("already_resolved")
            logger.warning(f"Manual update of delivery {delivery_id} failed: {e}")
            self.notices.post(
                "Update Failed",
                "Failed to update delivery status",
                NoticeVariant.DESTRUCTIVE,
            )
            raise

        metrics_collector.record_transition(target.value, "agent")
        self.notices.post("Status Updated", f"Delivery marked as {target.value}")
        return delivery

    async def _transition(
        self,
        delivery_id: str,
        target: DeliveryStatus,
        reason: str | None,
    ) -> Delivery:
        row = await self.store.get("deliveries", delivery_id)
        if row is None:
            raise NotFound("deliveries", delivery_id)

        current = Delivery.from_row(row)
        resolved = apply_transition(current, target, self._clock(), reason=reason, manual=True)

        updated = await self.store.update(
            "deliveries",
            delivery_id,
            transition_patch(resolved),
            expected={"status": DeliveryStatus.SCHEDULED.value},
        )
        if updated is not None:
            return Delivery.from_row(updated)

        # Lost the race: find out why
        latest = await self.store.get("deliveries", delivery_id)
        if latest is None:
            raise NotFound("deliveries", delivery_id)
        raise InvalidTransition(
            "Delivery already resolved",
            delivery_id=delivery_id,
            current_status=latest["status"],
            target_status=target.value,
        )

    # ================================
    # SIMULATION CONTROL
    # ================================

    async def start_simulation(self) -> bool:
        return await self.scheduler.start()

    async def stop_simulation(self) -> bool:
        return await self.scheduler.stop()

    def is_simulation_active(self) -> bool:
        return self.scheduler.is_active()

    async def reset_all_data(self) -> dict[str, int]:
        deleted = await self.scheduler.reset_all()
        self.cache.clear()
        return deleted
