import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidRequestError, NotFoundError, PaymentDeclinedError
from app.models.event import Event
from app.models.subscription import Subscription
from app.schemas.billing import CheckoutRequest, PaymentMethod
from app.services import event_service
from app.services.checkout_service import CheckoutService
from tests.utils import make_customer, make_gateway, make_payment_method

pytestmark = pytest.mark.asyncio


async def _count_subscriptions(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(Subscription))


async def _event_types(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Event.type).order_by(Event.id))
    return list(result.scalars().all())


def _request(plan_id, card_number="4242424242424242") -> CheckoutRequest:
    return CheckoutRequest(
        plan_id=plan_id,
        customer_info=make_customer(),
        payment_method=make_payment_method(card_number),
    )


async def test_successful_checkout(db, plans):
    result = await CheckoutService(db, make_gateway()).checkout(_request(plans["Basic"].id))

    assert result.subscription.status == "ACTIVE"
    assert result.subscription.plan.name == "Basic"
    assert result.subscription.plan.price == 999
    assert result.subscription.user_id == result.customer_id
    assert result.customer_id.startswith("cus_mock_")
    assert result.payment_intent_id.startswith("pi_mock_")
    assert await _event_types(db) == [
        event_service.CHECKOUT_STARTED,
        event_service.CHECKOUT_COMPLETED,
    ]
    completed = (await db.execute(
        select(Event).where(Event.type == event_service.CHECKOUT_COMPLETED)
    )).scalar_one()
    assert completed.user_id == "ada@example.com"
    assert event_service.decode_metadata(completed) == {
        "planId": plans["Basic"].id,
        "subscriptionId": result.subscription.id,
        "paymentIntentId": result.payment_intent_id,
    }


async def test_declined_checkout_creates_no_subscription(db, plans):
    with pytest.raises(PaymentDeclinedError) as exc_info:
        await CheckoutService(db, make_gateway()).checkout(
            _request(plans["Basic"].id, "4000000000000119")
        )

    assert exc_info.value.status_code == 402
    assert exc_info.value.message == "Your card has insufficient funds."
    assert await _count_subscriptions(db) == 0
    assert await _event_types(db) == [
        event_service.CHECKOUT_STARTED,
        event_service.CHECKOUT_FAILED,
    ]


async def test_random_decline(db, plans):
    with pytest.raises(PaymentDeclinedError, match="Payment processing failed"):
        await CheckoutService(db, make_gateway(roll=0.0)).checkout(_request(plans["Pro"].id))
    assert await _count_subscriptions(db) == 0


@pytest.mark.parametrize("missing", ["plan_id", "customer_info", "payment_method"])
async def test_missing_fields(db, plans, missing):
    request = _request(plans["Basic"].id)
    setattr(request, missing, None)

    with pytest.raises(InvalidRequestError, match="Missing required fields"):
        await CheckoutService(db, make_gateway()).checkout(request)
    assert await _event_types(db) == []


async def test_unknown_plan(db, plans):
    with pytest.raises(NotFoundError, match="Plan not found"):
        await CheckoutService(db, make_gateway()).checkout(_request(31337))
    assert await _count_subscriptions(db) == 0


async def test_invalid_card_syntax_rejected_before_charge(db, plans):
    request = _request(plans["Basic"].id)
    request.payment_method = PaymentMethod(
        card_number="1234",
        expiry_month="12",
        expiry_year="99",
        cvc="123",
    )

    with pytest.raises(InvalidRequestError, match="Invalid payment details"):
        await CheckoutService(db, make_gateway()).checkout(request)
    assert await _count_subscriptions(db) == 0


async def test_checkout_is_not_idempotent(db, plans):
    service = CheckoutService(db, make_gateway())
    first = await service.checkout(_request(plans["Basic"].id))
    second = await service.checkout(_request(plans["Basic"].id))

    assert first.subscription.id != second.subscription.id
    assert first.payment_intent_id != second.payment_intent_id
    assert await _count_subscriptions(db) == 2


async def test_checkout_succeeds_when_event_tracking_fails(db, plans, monkeypatch):
    def _broken_event(**kwargs):
        raise RuntimeError("events table unavailable")

    monkeypatch.setattr(event_service, "Event", _broken_event)

    result = await CheckoutService(db, make_gateway()).checkout(_request(plans["Basic"].id))

    assert result.subscription.status == "ACTIVE"
    assert result.subscription.plan.name == "Basic"
    assert await _count_subscriptions(db) == 1
