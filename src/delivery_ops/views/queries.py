"""
Aggregate query shapes.

Each function reads the record store and derives one dashboard aggregate.
The ``*_TABLES`` constants list what each shape reads; the aggregate cache
uses them to decide which entries a change invalidates.
"""

from datetime import date
from enum import Enum

from delivery_ops.lifecycle.states import DeliveryStatus
from delivery_ops.services.record_store import RecordStore
from delivery_ops.shared.models import (
    AgentDeliveryStats,
    AgentTodayDeliveries,
    DashboardTotals,
    Delivery,
)

ROLE_DELIVERIES_SHAPE = "role_deliveries"
AGENT_TODAY_SHAPE = "agent_today"
DASHBOARD_TOTALS_SHAPE = "dashboard_totals"

ROLE_DELIVERY_TABLES = ("deliveries", "subscriptions")
AGENT_TODAY_TABLES = ("deliveries",)
DASHBOARD_TABLES = ("deliveries", "subscriptions", "areas")

RECENT_ORDER = (("delivery_date", "desc"), ("created_at", "desc"))


class Role(str, Enum):
    """Dashboard user roles."""

    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    DISTRIBUTOR = "distributor"
    AGENT = "agent"
    CUSTOMER = "customer"


# Roles that see every delivery
ALL_DELIVERIES_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN, Role.DISTRIBUTOR})


def parse_role(value: str | Role | None) -> Role | None:
    """Return the Role for ``value``, or None if it is not a known role."""
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


async def fetch_role_deliveries(
    store: RecordStore,
    role: str | Role | None,
    user_id: str | None,
    limit: int = 10,
) -> list[Delivery]:
    """
    Most recent deliveries visible to a role.

    admin, super_admin and distributor see all deliveries; an agent sees the
    deliveries assigned to them; a customer sees the deliveries of their own
    subscriptions. Unknown roles see nothing.
    """
    parsed = parse_role(role)
    if parsed is None:
        return []

    if parsed in ALL_DELIVERIES_ROLES:
        filters = {}
    elif not user_id:
        return []
    elif parsed == Role.AGENT:
        filters = {"agent_id": user_id}
    else:
        subscriptions = await store.select("subscriptions", {"user_id": user_id})
        subscription_ids = [row["id"] for row in subscriptions]
        if not subscription_ids:
            return []
        filters = {"subscription_id": subscription_ids}

    rows = await store.select("deliveries", filters, order=RECENT_ORDER, limit=limit)
    return [Delivery.from_row(row) for row in rows]


async def fetch_agent_today(
    store: RecordStore, agent_id: str, today: date
) -> AgentTodayDeliveries:
    """Today's deliveries for ``agent_id`` ordered by status, with counts."""
    rows = await store.select(
        "deliveries",
        {"agent_id": agent_id, "delivery_date": today},
        order=(("status", "asc"), ("created_at", "asc")),
    )
    deliveries = [Delivery.from_row(row) for row in rows]
    return AgentTodayDeliveries(
        agent_id=agent_id,
        delivery_date=today,
        deliveries=deliveries,
        stats=AgentDeliveryStats.from_deliveries(deliveries),
    )


async def fetch_dashboard_totals(store: RecordStore, today: date) -> DashboardTotals:
    """Today's totals plus active subscription and area counts."""
    todays = await store.select("deliveries", {"delivery_date": today})
    statuses = [row["status"] for row in todays]

    total = len(statuses)
    completed = statuses.count(DeliveryStatus.DELIVERED.value)
    missed = statuses.count(DeliveryStatus.MISSED.value)
    pending = statuses.count(DeliveryStatus.SCHEDULED.value)

    return DashboardTotals(
        total_today=total,
        completed_today=completed,
        pending_today=pending,
        missed_today=missed,
        active_subscriptions=await store.count("subscriptions", {"status": "active"}),
        areas_count=await store.count("areas"),
        success_rate=round(completed * 100 / total, 1) if total else 0.0,
    )
