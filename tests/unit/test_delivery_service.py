"""Tests for DeliveryService reads, agent actions and cache consistency."""

import pytest
import pytest_asyncio

from delivery_ops.lifecycle.states import DeliveryStatus
from delivery_ops.lifecycle.transitions import DELIVERED_NOTE, MANUAL_MISS_REASON
from delivery_ops.realtime.notices import NoticeBoard, NoticeVariant
from delivery_ops.services.delivery_service import DeliveryService
from delivery_ops.shared.exceptions import InvalidTransition, NotFound
from delivery_ops.simulation.scheduler import SimulationScheduler
from delivery_ops.views.aggregate_cache import AggregateKey, AggregateViewCache
from delivery_ops.views.queries import DASHBOARD_TOTALS_SHAPE


@pytest_asyncio.fixture
async def service(store, rng, clock):
    scheduler = SimulationScheduler(store, rng=rng, clock=clock)
    service = DeliveryService(
        store,
        scheduler,
        cache=AggregateViewCache(),
        notices=NoticeBoard(ttl_seconds=60),
        clock=clock,
    )
    service.start_change_tracking()
    yield service
    await service.stop_simulation()
    service.stop_change_tracking()


@pytest_asyncio.fixture
async def scheduled(make_subscription, make_delivery):
    subscription = await make_subscription()
    return await make_delivery(subscription["id"])


def notice_titles(service) -> list[str]:
    return [n.title for n in service.notices.current()]


class TestMarkDelivered:
    @pytest.mark.asyncio
    async def test_scenario_agent_marks_delivery_delivered(
        self, service, store, scheduled, fixed_now
    ):
        before = await service.get_dashboard_totals()

        delivery = await service.mark_delivered(scheduled["id"])

        assert delivery.status == DeliveryStatus.DELIVERED
        assert delivery.delivered_at == fixed_now
        assert delivery.notes == DELIVERED_NOTE
        row = await store.get("deliveries", scheduled["id"])
        assert row["status"] == "delivered"

        after = await service.get_dashboard_totals()
        assert after.completed_today == before.completed_today + 1
        assert after.pending_today == before.pending_today - 1
        assert after.success_rate == 100

    @pytest.mark.asyncio
    async def test_scenario_second_resolution_rejected(self, service, store, scheduled):
        await service.mark_delivered(scheduled["id"])
        row_after_first = await store.get("deliveries", scheduled["id"])

        with pytest.raises(InvalidTransition) as exc_info:
            await service.mark_missed(scheduled["id"], "Gate locked")

        assert exc_info.value.current_status == "delivered"
        assert exc_info.value.target_status == "missed"
        assert await store.get("deliveries", scheduled["id"]) == row_after_first

    @pytest.mark.asyncio
    async def test_unknown_delivery_not_found(self, service):
        with pytest.raises(NotFound):
            await service.mark_delivered("missing-delivery")


class TestMarkMissed:
    @pytest.mark.asyncio
    async def test_reason_recorded(self, service, scheduled):
        delivery = await service.mark_missed(scheduled["id"], "Gate locked")

        assert delivery.status == DeliveryStatus.MISSED
        assert delivery.delivered_at is None
        assert delivery.notes == "Gate locked"

    @pytest.mark.asyncio
    async def test_default_reason_for_agent(self, service, scheduled):
        delivery = await service.mark_missed(scheduled["id"])

        assert delivery.notes == MANUAL_MISS_REASON


class TestNotices:
    @pytest.mark.asyncio
    async def test_success_posts_status_and_change_notices(self, service, scheduled):
        await service.mark_delivered(scheduled["id"])

        assert notice_titles(service) == ["Delivery Updated", "Status Updated"]
        assert service.notices.current()[-1].message == "Delivery marked as delivered"

    @pytest.mark.asyncio
    async def test_failure_posts_destructive_notice(self, service, scheduled):
        await service.mark_delivered(scheduled["id"])
        service.notices.clear()

        with pytest.raises(InvalidTransition):
            await service.mark_delivered(scheduled["id"])

        [notice] = service.notices.current()
        assert notice.title == "Update Failed"
        assert notice.variant == NoticeVariant.DESTRUCTIVE


class TestRoleDeliveries:
    @pytest_asyncio.fixture
    async def population(self, make_subscription, make_delivery, make_agent, days_from_today):
        agent = await make_agent()
        customer_sub = await make_subscription(user_id="customer-1")
        other_sub = await make_subscription(user_id="customer-2")
        for offset in range(3):
            await make_delivery(
                customer_sub["id"], delivery_date=days_from_today(-offset), agent_id=agent
            )
        await make_delivery(other_sub["id"], delivery_date=days_from_today(1))
        return {"agent": agent, "customer_sub": customer_sub["id"]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["admin", "super_admin", "distributor"])
    async def test_privileged_roles_see_everything(self, service, population, role):
        deliveries = await service.get_deliveries_for_role(role, None).fetch()

        assert len(deliveries) == 4
        dates = [d.delivery_date for d in deliveries]
        assert dates == sorted(dates, reverse=True)

    @pytest.mark.asyncio
    async def test_agent_sees_assigned_deliveries(self, service, population):
        deliveries = await service.get_deliveries_for_role("agent", population["agent"]).fetch()

        assert len(deliveries) == 3
        assert all(d.agent_id == population["agent"] for d in deliveries)

    @pytest.mark.asyncio
    async def test_customer_sees_own_subscriptions(self, service, population):
        deliveries = await service.get_deliveries_for_role("customer", "customer-1").fetch()

        assert {d.subscription_id for d in deliveries} == {population["customer_sub"]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("role", "user_id"),
        [("courier", "someone"), (None, None), ("agent", None), ("customer", "nobody")],
    )
    async def test_no_visibility_yields_empty(self, service, population, role, user_id):
        assert await service.get_deliveries_for_role(role, user_id).fetch() == []

    @pytest.mark.asyncio
    async def test_iteration_is_restartable_and_fresh(
        self, service, population, make_delivery, days_from_today
    ):
        deliveries = service.get_deliveries_for_role("customer", "customer-1")

        first = [d.id async for d in deliveries]
        added = await make_delivery(population["customer_sub"], delivery_date=days_from_today(2))
        second = [d.id async for d in deliveries]

        assert len(first) == 3
        assert second[0] == added["id"]
        assert set(first) < set(second)

    @pytest.mark.asyncio
    async def test_recent_limit_applies(self, service, make_subscription, make_delivery):
        subscription = await make_subscription()
        for _ in range(12):
            await make_delivery(subscription["id"])

        assert len(await service.get_deliveries_for_role("admin", None).fetch()) == 10


class TestAgentToday:
    @pytest.mark.asyncio
    async def test_lists_today_only_with_stats(
        self, service, make_subscription, make_delivery, make_agent, days_from_today
    ):
        agent = await make_agent()
        subscription = await make_subscription()
        await make_delivery(subscription["id"], agent_id=agent)
        await make_delivery(subscription["id"], agent_id=agent, status="delivered")
        await make_delivery(subscription["id"], agent_id=agent, status="missed")
        await make_delivery(subscription["id"], agent_id=agent, delivery_date=days_from_today(1))

        today = await service.get_agent_today_deliveries(agent)

        assert today.stats.total == 3
        assert (today.stats.delivered, today.stats.scheduled, today.stats.missed) == (1, 1, 1)
        assert [d.status.value for d in today.deliveries] == ["delivered", "missed", "scheduled"]

    @pytest.mark.asyncio
    async def test_reflects_agent_action(self, service, make_subscription, make_delivery, make_agent):
        agent = await make_agent()
        subscription = await make_subscription()
        delivery = await make_delivery(subscription["id"], agent_id=agent)

        assert (await service.get_agent_today_deliveries(agent)).stats.scheduled == 1
        await service.mark_delivered(delivery["id"])

        stats = (await service.get_agent_today_deliveries(agent)).stats
        assert (stats.scheduled, stats.delivered) == (0, 1)


class TestDashboardTotals:
    @pytest.mark.asyncio
    async def test_empty_store(self, service):
        totals = await service.get_dashboard_totals()

        assert totals.total_today == 0
        assert totals.success_rate == 0

    @pytest.mark.asyncio
    async def test_counts_and_rounded_success_rate(
        self, service, store, make_subscription, make_delivery, days_from_today
    ):
        subscription = await make_subscription()
        await make_subscription(status="paused")
        await store.insert("areas", [{"name": "Sector 17"}, {"name": "Sector 22"}])
        await make_delivery(subscription["id"], status="delivered")
        await make_delivery(subscription["id"], status="missed")
        await make_delivery(subscription["id"])
        await make_delivery(subscription["id"], status="delivered", delivery_date=days_from_today(-1))

        totals = await service.get_dashboard_totals()

        assert totals.total_today == 3
        assert totals.completed_today == 1
        assert totals.missed_today == 1
        assert totals.pending_today == 1
        assert totals.active_subscriptions == 1
        assert totals.areas_count == 2
        assert totals.success_rate == 33.3

    @pytest.mark.asyncio
    async def test_success_rate_keeps_one_decimal(self, service, make_subscription, make_delivery):
        subscription = await make_subscription()
        await make_delivery(subscription["id"], status="delivered")
        await make_delivery(subscription["id"], status="delivered")
        await make_delivery(subscription["id"], status="missed")

        assert (await service.get_dashboard_totals()).success_rate == 66.7

    @pytest.mark.asyncio
    async def test_cached_until_a_watched_table_changes(
        self, service, store, fixed_now, make_subscription
    ):
        key = AggregateKey(DASHBOARD_TOTALS_SHAPE, (fixed_now.date(),))
        await service.get_dashboard_totals()
        await service.get_dashboard_totals()

        assert service.cache.stats()["hits"] == 1
        assert not service.cache.peek(key).stale

        await make_subscription()

        assert service.cache.peek(key).stale
        assert (await service.get_dashboard_totals()).active_subscriptions == 1

    @pytest.mark.asyncio
    async def test_unrelated_table_does_not_invalidate(self, service, store, fixed_now):
        key = AggregateKey(DASHBOARD_TOTALS_SHAPE, (fixed_now.date(),))
        await service.get_dashboard_totals()

        await store.insert("user_roles", [{"user_id": "u-1", "role": "agent"}])

        assert not service.cache.peek(key).stale

    @pytest.mark.asyncio
    async def test_change_tracking_stopped_leaves_entries(
        self, service, fixed_now, make_subscription
    ):
        key = AggregateKey(DASHBOARD_TOTALS_SHAPE, (fixed_now.date(),))
        await service.get_dashboard_totals()
        service.stop_change_tracking()

        await make_subscription()

        assert not service.cache.peek(key).stale


class TestSimulationControl:
    @pytest.mark.asyncio
    async def test_reset_clears_data_and_cache(self, service, store, scheduled, fixed_now):
        await service.get_dashboard_totals()

        deleted = await service.reset_all_data()

        assert deleted["deliveries"] == 1
        assert service.cache.peek(AggregateKey(DASHBOARD_TOTALS_SHAPE, (fixed_now.date(),))) is None
        assert (await service.get_dashboard_totals()).total_today == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, service):
        assert not service.is_simulation_active()
        assert await service.start_simulation() is True
        assert service.is_simulation_active()
        assert await service.start_simulation() is False
        assert await service.stop_simulation() is True
        assert not service.is_simulation_active()
