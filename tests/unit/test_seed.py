"""Tests for demo data seeding."""

import pytest

from delivery_ops.lifecycle.states import DeliveryStatus
from delivery_ops.simulation.seed import DEMO_AREAS, DEMO_PRODUCTS, seed_demo_data


class TestSeedDemoData:
    @pytest.mark.asyncio
    async def test_creates_consistent_data_set(self, store, clock, fixed_now):
        created = await seed_demo_data(store, clock=clock)

        assert created == {
            "areas": len(DEMO_AREAS),
            "products": len(DEMO_PRODUCTS),
            "profiles": 3,
            "user_roles": 3,
            "agent_assignments": 1,
            "subscriptions": 2,
            "deliveries": 2,
        }

        [agent_role] = await store.select("user_roles", {"role": "agent"})
        deliveries = await store.select("deliveries", order=(("status", "asc"),))
        assert [d["status"] for d in deliveries] == ["delivered", "scheduled"]
        assert all(d["agent_id"] == agent_role["user_id"] for d in deliveries)
        assert all(d["delivery_date"] == fixed_now.date() for d in deliveries)
        assert deliveries[0]["delivered_at"] == fixed_now
        assert deliveries[1]["delivered_at"] is None

    @pytest.mark.asyncio
    async def test_customers_own_subscriptions(self, store, clock):
        await seed_demo_data(store, clock=clock)

        customers = {r["user_id"] for r in await store.select("user_roles", {"role": "customer"})}
        subscriptions = await store.select("subscriptions")

        assert {s["user_id"] for s in subscriptions} == customers
        assert all(s["status"] == "active" for s in subscriptions)
        assert sorted(len(s["delivery_days"]) for s in subscriptions) == [3, 3]

    @pytest.mark.asyncio
    async def test_reference_data_not_duplicated(self, store, clock):
        await seed_demo_data(store, clock=clock)
        await seed_demo_data(store, clock=clock)

        assert await store.count("areas") == len(DEMO_AREAS)
        assert await store.count("products") == len(DEMO_PRODUCTS)
        assert await store.count("subscriptions") == 4
        assert await store.count("deliveries", {"status": DeliveryStatus.SCHEDULED.value}) == 2

    @pytest.mark.asyncio
    async def test_reuses_existing_product(self, store, clock, product):
        await seed_demo_data(store, clock=clock)

        toned = await store.select("products", {"name": "Toned Milk"})
        assert [p["id"] for p in toned] == [product["id"]]

    @pytest.mark.asyncio
    async def test_seeding_publishes_changes(self, store, clock):
        tables = []
        store.subscribe_to_changes(["deliveries", "subscriptions"], lambda e: tables.append(e.table))

        await seed_demo_data(store, clock=clock)

        assert tables.count("subscriptions") == 2
        assert tables.count("deliveries") == 2
