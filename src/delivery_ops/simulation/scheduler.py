"""
Delivery simulation scheduler.

Emulates field agent activity so dashboards have something to show: on start
it populates a five day delivery grid with random outcomes, then a background
task resolves (or creates) one delivery per tick at a randomized interval.

All randomness comes from one injectable ``random.Random`` and all timestamps
from one injectable clock, so tests can replay a run exactly.
"""

import asyncio
import random
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from delivery_ops.config.models import SimulationConfig
from delivery_ops.db.models.base import new_id, utc_now
from delivery_ops.lifecycle.states import DeliveryStatus
from delivery_ops.lifecycle.transitions import (
    apply_transition,
    resolved_draft,
    transition_patch,
)
from delivery_ops.services.record_store import RecordStore
from delivery_ops.shared.exceptions import ResetError, StoreError
from delivery_ops.shared.logging_utils import get_structured_logger
from delivery_ops.shared.metrics import metrics_collector
from delivery_ops.shared.models import Delivery, Subscription

# Children before parents
RESET_ORDER = ("deliveries", "subscriptions", "agent_assignments", "inventory")

# Oldest scheduled delivery first
TICK_ORDER = (("delivery_date", "asc"), ("created_at", "asc"))


class TickOutcome(str, Enum):
    RESOLVED = "resolved"
    CREATED = "created"
    IDLE = "idle"
    FAILED = "failed"


@dataclass
class TickResult:
    """What one tick did."""

    outcome: TickOutcome
    delivery: Delivery | None = None
    error: str | None = None


@dataclass
class SimulationStatistics:
    """Running counters for the current scheduler instance."""

    ticks_run: int = 0
    ticks_failed: int = 0
    deliveries_created: int = 0
    deliveries_resolved: dict[str, int] = field(
        default_factory=lambda: {
            DeliveryStatus.DELIVERED.value: 0,
            DeliveryStatus.MISSED.value: 0,
        }
    )
    started_at: datetime | None = None
    last_tick_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticks_run": self.ticks_run,
            "ticks_failed": self.ticks_failed,
            "deliveries_created": self.deliveries_created,
            "deliveries_resolved": dict(self.deliveries_resolved),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
        }


class SimulationScheduler:
    """
    Owner of the background simulation task.

    Only one loop task exists at a time: ``start()`` while active is a no-op
    that returns False, and ``stop()`` waits for the loop to exit.
    """

    def __init__(
        self,
        store: RecordStore,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.config = config or SimulationConfig()
        self.rng = rng or random.Random(self.config.seed)
        self._clock = clock or utc_now

        self.log = get_structured_logger(__name__, component="simulation")
        self.statistics = SimulationStatistics()

        self._is_active = False
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._control_lock = asyncio.Lock()
        self._session_id: str | None = None
        self._started_monotonic: float | None = None

    # ================================
    # INPUTS
    # ================================

    async def load_active_subscriptions(self) -> list[Subscription]:
        rows = await self.store.select(
            "subscriptions", {"status": "active"}, order=(("created_at", "asc"),)
        )
        return [Subscription.from_row(row) for row in rows]

    async def load_agent_ids(self) -> list[str]:
        rows = await self.store.select(
            "user_roles", {"role": "agent"}, order=(("created_at", "asc"),)
        )
        return list(dict.fromkeys(row["user_id"] for row in rows))

    def _pick_agent(self, agents: Sequence[str]) -> str | None:
        return self.rng.choice(agents) if agents else None

    def _grid(
        self, subscriptions: Sequence[Subscription], horizon_days: int
    ) -> Iterator[tuple[Subscription, date]]:
        """Yield (subscription, date) pairs, day by day from today."""
        active = [s for s in subscriptions if s.is_active][: self.config.max_subscriptions]
        today = self._clock().date()
        for offset in range(horizon_days):
            delivery_date = today + timedelta(days=offset)
            for subscription in active:
                yield subscription, delivery_date

    # ================================
    # BATCH PROVISIONING
    # ================================

    async def provision(
        self,
        subscriptions: Sequence[Subscription],
        agents: Sequence[str],
        horizon_days: int | None = None,
    ) -> list[Delivery]:
        """
        Create one scheduled delivery per active subscription per day.

        Returns:
            The inserted deliveries (single batch insert)
        """
        horizon = self.config.horizon_days if horizon_days is None else horizon_days
        drafts = [
            Delivery(
                id=new_id(),
                subscription_id=subscription.id,
                agent_id=self._pick_agent(agents),
                delivery_date=delivery_date,
            )
            for subscription, delivery_date in self._grid(subscriptions, horizon)
        ]
        return await self._insert_drafts(drafts)

    async def bulk_resolve(
        self, subscriptions: Sequence[Subscription], agents: Sequence[str]
    ) -> list[Delivery]:
        """
        Populate the delivery grid with random outcomes in one batch.

        Each delivery gets a status drawn uniformly from ``bulk_statuses``;
        terminal statuses are reached through the transition engine.
        """
        now = self._clock()
        drafts = []
        for subscription, delivery_date in self._grid(
            subscriptions, self.config.horizon_days
        ):
            status = self.rng.choice(self.config.bulk_statuses)
            draft = Delivery(
                id=new_id(),
                subscription_id=subscription.id,
                agent_id=self._pick_agent(agents),
                delivery_date=delivery_date,
            )
            drafts.append(resolved_draft(draft, status, now))
        return await self._insert_drafts(drafts)

    async def _insert_drafts(self, drafts: list[Delivery]) -> list[Delivery]:
        if not drafts:
            return []

        rows = await self.store.insert("deliveries", [d.to_insert_row() for d in drafts])
        self.statistics.deliveries_created += len(rows)
        metrics_collector.record_deliveries_created(len(rows))
        self.log.info("Provisioned deliveries", count=len(rows))
        return [Delivery.from_row(row) for row in rows]

    # ================================
    # TICK
    # ================================

    async def tick(self) -> TickResult:
        """
        Run one unit of simulated agent work.

        Never raises: failures are logged and reported as a FAILED result.
        """
        started = time.perf_counter()
        try:
            result = await self._tick()
        except Exception as e:
            self.statistics.ticks_failed += 1
            self.log.exception(
                "Simulation tick failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            result = TickResult(outcome=TickOutcome.FAILED, error=str(e))

        self.statistics.ticks_run += 1
        self.statistics.last_tick_at = self._clock()
        metrics_collector.record_tick(result.outcome.value, time.perf_counter() - started)
        return result

    async def _tick(self) -> TickResult:
        rows = await self.store.select(
            "deliveries",
            {"status": DeliveryStatus.SCHEDULED.value},
            order=TICK_ORDER,
            limit=1,
        )
        if rows:
            return await self._resolve_next(Delivery.from_row(rows[0]))
        return await self._create_next()

    async def _resolve_next(self, delivery: Delivery) -> TickResult:
        target = (
            DeliveryStatus.DELIVERED
            if self.rng.random() < self.config.delivered_probability
            else DeliveryStatus.MISSED
        )
        log = self.log.bind(delivery_id=delivery.id)
        resolved = apply_transition(delivery, target, self._clock())
        updated = await self.store.update(
            "deliveries",
            delivery.id,
            transition_patch(resolved),
            expected={"status": DeliveryStatus.SCHEDULED.value},
        )
        if updated is None:
            # Resolved by someone else between the read and the update
            metrics_collector.record_transition_rejected("concurrent_update")
            log.debug("Delivery resolved concurrently, skipping")
            return TickResult(outcome=TickOutcome.IDLE, delivery=delivery)

        self.statistics.deliveries_resolved[target.value] += 1
        metrics_collector.record_transition(target.value, "simulation")
        log.debug("Resolved delivery", status=target.value)
        return TickResult(outcome=TickOutcome.RESOLVED, delivery=Delivery.from_row(updated))

    async def _create_next(self) -> TickResult:
        subscriptions = await self.load_active_subscriptions()
        if not subscriptions:
            self.log.debug("No active subscriptions to provision")
            return TickResult(outcome=TickOutcome.IDLE)

        subscription = self.rng.choice(subscriptions)
        agents = await self.load_agent_ids()
        draft = Delivery(
            id=new_id(),
            subscription_id=subscription.id,
            agent_id=self._pick_agent(agents),
            delivery_date=self._clock().date(),
        )
        created = await self._insert_drafts([draft])
        return TickResult(outcome=TickOutcome.CREATED, delivery=created[0])

    # ================================
    # LIFECYCLE
    # ================================

    def is_active(self) -> bool:
        return self._is_active

    async def start(self) -> bool:
        """
        Populate demo deliveries and start the recurring tick.

        Returns:
            bool: True if the simulation started, False if already active
        """
        async with self._control_lock:
            if self._is_active:
                self.log.warning("Simulation is already active")
                return False

            self._session_id = self.log.generate_correlation_id("SIM")
            self.log.set_correlation_id(self._session_id)

            subscriptions = await self.load_active_subscriptions()
            agents = await self.load_agent_ids()
            await self.bulk_resolve(subscriptions, agents)

            self._is_active = True
            self._stop_event = asyncio.Event()
            self._started_monotonic = time.monotonic()
            self.statistics.started_at = self._clock()
            metrics_collector.start_simulation()

            self._task = asyncio.create_task(self._run_loop(), name="delivery-simulation")

            self.log.info(
                "Simulation started",
                subscriptions=len(subscriptions),
                agents=len(agents),
                tick_interval_min_seconds=self.config.tick_interval_min_seconds,
                tick_interval_max_seconds=self.config.tick_interval_max_seconds,
            )
            return True

    async def stop(self) -> bool:
        """
        Stop the recurring tick.

        A tick already running is allowed to finish; no further tick fires.

        Returns:
            bool: True once the simulation is stopped
        """
        async with self._control_lock:
            if not self._is_active:
                self.log.info("Simulation is not active")
                return True

            self.log.info("Stopping simulation")
            self._is_active = False
            self._stop_event.set()

            if self._task is not None:
                await self._task
                self._task = None

            metrics_collector.stop_simulation()
            self.log.info(
                "Simulation stopped",
                **self.statistics.to_dict(),
            )
            self.log.clear_correlation_id()
            return True

    async def _run_loop(self) -> None:
        while self._is_active:
            interval = self.rng.uniform(
                self.config.tick_interval_min_seconds,
                self.config.tick_interval_max_seconds,
            )
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except TimeoutError:
                pass

            if not self._is_active:
                break

            await self.tick()
            if self._started_monotonic is not None:
                metrics_collector.update_uptime()

    def get_status(self) -> dict[str, Any]:
        uptime = (
            time.monotonic() - self._started_monotonic
            if self._is_active and self._started_monotonic is not None
            else 0.0
        )
        return {
            "active": self._is_active,
            "session_id": self._session_id,
            "uptime_seconds": round(uptime, 3),
            "statistics": self.statistics.to_dict(),
        }

    # ================================
    # RESET
    # ================================

    async def reset_all(self) -> dict[str, int]:
        """
        Delete all deliveries, subscriptions, agent assignments and inventory.

        Tables are cleared in that order; earlier stages are not rolled back
        when a later one fails.

        Returns:
            Rows deleted per table

        Raises:
            ResetError: Naming the failed stage and the stages already cleared
        """
        if self._is_active:
            await self.stop()

        completed: list[str] = []
        deleted: dict[str, int] = {}
        for table in RESET_ORDER:
            try:
                deleted[table] = await self.store.delete_all(table)
            except StoreError as e:
                self.log.error(
                    "Reset failed",
                    stage=table,
                    completed_stages=completed,
                    error=str(e),
                )
                raise ResetError(table, completed, e) from e
            completed.append(table)

        self.log.info("All simulation data cleared", deleted=deleted)
        return deleted
