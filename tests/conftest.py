"""
Pytest configuration and fixtures for delivery operations tests.

Provides an in-memory record store, a seeded random source, a fixed clock
and factories for subscriptions, agents and deliveries.
"""

import random
from datetime import date, datetime, timedelta

import pytest
import pytest_asyncio

from delivery_ops.config.models import SimulationConfig
from delivery_ops.db.engine import create_engine
from delivery_ops.db.init import create_all_tables
from delivery_ops.db.models.base import new_id
from delivery_ops.services.record_store import RecordStore

FIXED_NOW = datetime(2025, 3, 10, 9, 30, 0)
TODAY = FIXED_NOW.date()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock that always returns FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def fast_simulation_config() -> SimulationConfig:
    """Simulation settings with millisecond ticks for loop tests."""
    return SimulationConfig(
        tick_interval_min_seconds=0.01,
        tick_interval_max_seconds=0.02,
        seed=7,
    )


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite engine with all tables created."""
    engine = create_engine(":memory:")
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine) -> RecordStore:
    return RecordStore.from_engine(engine)


@pytest_asyncio.fixture
async def product(store) -> dict:
    rows = await store.insert(
        "products",
        [{"name": "Toned Milk", "type": "dairy", "price": 55.0, "unit": "liter"}],
    )
    return rows[0]


@pytest.fixture
def make_subscription(store, product):
    """Factory inserting one subscription row."""

    async def _make(user_id: str | None = None, status: str = "active", **overrides) -> dict:
        row = {
            "user_id": user_id or new_id(),
            "product_id": product["id"],
            "quantity": 1,
            "status": status,
            "delivery_days": ["monday", "thursday"],
            **overrides,
        }
        return (await store.insert("subscriptions", [row]))[0]

    return _make


@pytest.fixture
def make_agent(store):
    """Factory inserting an agent role and returning the agent id."""

    async def _make() -> str:
        agent_id = new_id()
        await store.insert("user_roles", [{"user_id": agent_id, "role": "agent"}])
        return agent_id

    return _make


@pytest.fixture
def make_delivery(store):
    """Factory inserting one delivery row."""

    async def _make(
        subscription_id: str,
        status: str = "scheduled",
        delivery_date: date = TODAY,
        agent_id: str | None = None,
        **overrides,
    ) -> dict:
        row = {
            "subscription_id": subscription_id,
            "agent_id": agent_id,
            "delivery_date": delivery_date,
            "status": status,
            **overrides,
        }
        if status == "delivered" and "delivered_at" not in row:
            row["delivered_at"] = FIXED_NOW
        return (await store.insert("deliveries", [row]))[0]

    return _make


@pytest.fixture
def days_from_today():
    return lambda n: TODAY + timedelta(days=n)
