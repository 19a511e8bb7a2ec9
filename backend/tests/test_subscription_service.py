from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidStateError, NotFoundError
from app.models.event import Event
from app.models.subscription import SubscriptionStatus
from app.services import event_service
from app.services.subscription_service import SubscriptionService
from tests.utils import make_gateway

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(db: AsyncSession) -> SubscriptionService:
    return SubscriptionService(db, make_gateway())


async def _events(db: AsyncSession, event_type: str) -> list[Event]:
    result = await db.execute(select(Event).where(Event.type == event_type).order_by(Event.id))
    return list(result.scalars().all())


async def test_create_active_subscription(service, plans):
    sub = await service.create("cus_mock_1", plans["Basic"].id)

    assert sub.status == SubscriptionStatus.ACTIVE.value
    assert sub.user_id == "cus_mock_1"
    assert sub.plan.price == 999
    assert sub.canceled_at is None
    assert sub.current_period_end - sub.current_period_start == timedelta(days=30)


async def test_create_unknown_plan(service):
    with pytest.raises(NotFoundError):
        await service.create("cus_mock_1", 999999)


async def test_change_plan_swaps_reference_and_records_price_change(service, db, plans):
    sub = await service.create("cus_mock_1", plans["Basic"].id)

    updated = await service.change_plan(sub.id, plans["Pro"].id)

    assert updated.plan_id == plans["Pro"].id
    assert updated.plan.name == "Pro"
    assert updated.status == SubscriptionStatus.ACTIVE.value
    events = await _events(db, event_service.SUBSCRIPTION_PLAN_CHANGED)
    assert len(events) == 1
    meta = event_service.decode_metadata(events[0])
    assert meta["priceChange"] == 2000
    assert meta["oldPlanName"] == "Basic"
    assert meta["newPlanName"] == "Pro"


async def test_downgrade_records_negative_price_change(service, db, plans):
    sub = await service.create("cus_mock_1", plans["Enterprise"].id)
    await service.change_plan(sub.id, plans["Basic"].id)

    events = await _events(db, event_service.SUBSCRIPTION_PLAN_CHANGED)
    assert event_service.decode_metadata(events[0])["priceChange"] == 999 - 9999


async def test_change_plan_on_canceled_subscription(service, plans):
    sub = await service.create("cus_mock_1", plans["Basic"].id)
    await service.cancel(sub.id)

    with pytest.raises(InvalidStateError):
        await service.change_plan(sub.id, plans["Pro"].id)

    stored = await service.get_subscription(sub.id)
    assert stored.plan_id == plans["Basic"].id


async def test_change_plan_not_found(service, plans):
    with pytest.raises(NotFoundError, match="Subscription not found"):
        await service.change_plan(12345, plans["Pro"].id)

    sub = await service.create("cus_mock_1", plans["Basic"].id)
    with pytest.raises(NotFoundError, match="Plan not found"):
        await service.change_plan(sub.id, 12345)


async def test_cancel_sets_status_and_timestamp(service, db, plans):
    sub = await service.create("cus_mock_1", plans["Pro"].id)

    canceled = await service.cancel(sub.id)

    assert canceled.status == SubscriptionStatus.CANCELED.value
    assert canceled.canceled_at is not None
    events = await _events(db, event_service.SUBSCRIPTION_CANCELED)
    assert event_service.decode_metadata(events[0]) == {
        "subscriptionId": sub.id,
        "planId": plans["Pro"].id,
        "planName": "Pro",
        "reason": "user_requested",
    }


async def test_cancel_twice(service, plans):
    sub = await service.create("cus_mock_1", plans["Pro"].id)
    await service.cancel(sub.id)

    with pytest.raises(InvalidStateError):
        await service.cancel(sub.id)


async def test_cancel_not_found(service):
    with pytest.raises(NotFoundError):
        await service.cancel(777)


async def test_get_current_returns_most_recent(service, plans):
    with pytest.raises(NotFoundError):
        await service.get_current()

    first = await service.create("cus_a", plans["Basic"].id)
    second = await service.create("cus_b", plans["Pro"].id)
    await service.cancel(second.id)

    current = await service.get_current()
    assert current.id == second.id
    assert current.status == SubscriptionStatus.CANCELED.value

    scoped = await service.get_current("cus_a")
    assert scoped.id == first.id

    with pytest.raises(NotFoundError):
        await service.get_current("cus_nobody")


async def test_lifecycle_works_without_gateway(db, plans):
    service = SubscriptionService(db)
    sub = await service.create("cus_mock_1", plans["Basic"].id)
    assert (await service.change_plan(sub.id, plans["Pro"].id)).plan_id == plans["Pro"].id
    assert (await service.cancel(sub.id)).status == SubscriptionStatus.CANCELED.value


async def test_lifecycle_results_survive_event_failures(service, db, plans, monkeypatch):
    sub = await service.create("cus_mock_1", plans["Basic"].id)

    def _broken_event(**kwargs):
        raise RuntimeError("events table unavailable")

    monkeypatch.setattr(event_service, "Event", _broken_event)

    changed = await service.change_plan(sub.id, plans["Pro"].id)
    assert changed.plan.name == "Pro"

    canceled = await service.cancel(sub.id)
    assert canceled.status == SubscriptionStatus.CANCELED.value
    assert canceled.plan_id == plans["Pro"].id
    assert (await db.execute(select(Event))).scalars().all() == []
