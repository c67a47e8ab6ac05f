"""
Demo data seeding.

Creates a small, self-consistent data set (areas, dairy products, one agent,
two customers with subscriptions, two deliveries for today) so the dashboards
and the simulator have something to work with on an empty database.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from delivery_ops.db.models.base import new_id, utc_now
from delivery_ops.lifecycle.states import DeliveryStatus
from delivery_ops.lifecycle.transitions import resolved_draft
from delivery_ops.services.record_store import RecordStore
from delivery_ops.shared.models import Delivery

logger = logging.getLogger(__name__)

DEMO_AREAS = [
    {"name": "Sector 17", "district": "Chandigarh", "pincode": "160017"},
    {"name": "Sector 22", "district": "Chandigarh", "pincode": "160022"},
    {"name": "Sector 35", "district": "Chandigarh", "pincode": "160035"},
    {"name": "Model Town", "district": "Ludhiana", "pincode": "141002"},
    {"name": "Civil Lines", "district": "Ludhiana", "pincode": "141001"},
]

DEMO_PRODUCTS = [
    {"name": "Fresh Whole Milk", "type": "dairy", "price": 65.0, "unit": "liter"},
    {"name": "Toned Milk", "type": "dairy", "price": 55.0, "unit": "liter"},
    {"name": "Double Toned Milk", "type": "dairy", "price": 50.0, "unit": "liter"},
    {"name": "Organic Milk", "type": "dairy", "price": 85.0, "unit": "liter"},
    {"name": "Buffalo Milk", "type": "dairy", "price": 75.0, "unit": "liter"},
]


async def _ensure_by_name(
    store: RecordStore, table: str, rows: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Insert rows whose name is not present yet; return all rows in input order."""
    existing = {
        row["name"]: row
        for row in await store.select(table, {"name": [r["name"] for r in rows]})
    }
    missing = [row for row in rows if row["name"] not in existing]
    for row in await store.insert(table, missing):
        existing[row["name"]] = row
    return [existing[row["name"]] for row in rows]


async def seed_demo_data(
    store: RecordStore, clock: Callable[[], datetime] = utc_now
) -> dict[str, int]:
    """
    Create the demo data set.

    Areas and products are matched by name, so seeding twice does not
    duplicate them; profiles, subscriptions and deliveries are always new.

    Returns:
        Number of rows per table (existing areas and products included)
    """
    now = clock()
    areas = await _ensure_by_name(store, "areas", DEMO_AREAS)
    products = await _ensure_by_name(store, "products", DEMO_PRODUCTS)

    agent_id, first_customer_id, second_customer_id = new_id(), new_id(), new_id()
    profiles = await store.insert(
        "profiles",
        [
            {
                "id": agent_id,
                "full_name": "Test Agent",
                "phone": "+91-9876543210",
                "address": "Agent Quarter, Sector 22",
                "area_id": areas[1]["id"],
            },
            {
                "id": first_customer_id,
                "full_name": "Test Customer 1",
                "phone": "+91-9876543211",
                "address": "House 123, Sector 17",
                "area_id": areas[0]["id"],
                "assigned_agent_id": agent_id,
            },
            {
                "id": second_customer_id,
                "full_name": "Test Customer 2",
                "phone": "+91-9876543212",
                "address": "House 456, Sector 22",
                "area_id": areas[1]["id"],
                "assigned_agent_id": agent_id,
            },
        ],
    )
    roles = await store.insert(
        "user_roles",
        [
            {"user_id": agent_id, "role": "agent"},
            {"user_id": first_customer_id, "role": "customer"},
            {"user_id": second_customer_id, "role": "customer"},
        ],
    )
    assignments = await store.insert(
        "agent_assignments",
        [{"agent_id": agent_id, "area_id": areas[1]["id"], "assigned_date": now.date()}],
    )
    subscriptions = await store.insert(
        "subscriptions",
        [
            {
                "user_id": first_customer_id,
                "product_id": products[0]["id"],
                "quantity": 2,
                "status": "active",
                "delivery_days": ["monday", "wednesday", "friday"],
                "start_date": now.date(),
            },
            {
                "user_id": second_customer_id,
                "product_id": products[1]["id"],
                "quantity": 1,
                "status": "active",
                "delivery_days": ["tuesday", "thursday", "saturday"],
                "start_date": now.date(),
            },
        ],
    )

    drafts = [
        Delivery(
            id=new_id(),
            subscription_id=subscription["id"],
            agent_id=agent_id,
            delivery_date=now.date(),
        )
        for subscription in subscriptions
    ]
    drafts[1] = resolved_draft(drafts[1], DeliveryStatus.DELIVERED, now)

    deliveries = await store.insert("deliveries", [d.to_insert_row() for d in drafts])

    created = {
        "areas": len(areas),
        "products": len(products),
        "profiles": len(profiles),
        "user_roles": len(roles),
        "agent_assignments": len(assignments),
        "subscriptions": len(subscriptions),
        "deliveries": len(deliveries),
    }
    logger.info(f"Seeded demo data: {created}")
    return created
