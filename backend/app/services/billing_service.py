"""
账单历史：从事件表推导（付款、换套餐、取消）
"""
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import Event
from app.models.plan import Plan
from app.schemas.billing import BillingHistoryItem, BillingHistoryResponse
from app.services import event_service
from app.services.plan_service import format_price

HISTORY_EVENT_TYPES = (
    event_service.CHECKOUT_COMPLETED,
    event_service.SUBSCRIPTION_PLAN_CHANGED,
    event_service.SUBSCRIPTION_CANCELED,
)


class BillingService:
    """计费服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _plans_by_id(self) -> Dict[int, Plan]:
        result = await self.db.execute(select(Plan))
        return {p.id: p for p in result.scalars().all()}

    async def get_billing_history(self, limit: int = 50) -> BillingHistoryResponse:
        """最新在前"""
        result = await self.db.execute(
            select(Event)
            .where(Event.type.in_(HISTORY_EVENT_TYPES))
            .order_by(Event.created_at.desc(), Event.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        events = result.scalars().all()
        plans = await self._plans_by_id()

        items: List[BillingHistoryItem] = []
        for event in events:
            meta = event_service.decode_metadata(event)
            if event.type == event_service.CHECKOUT_COMPLETED:
                plan = plans.get(meta.get("planId"))
                plan_name = plan.name if plan else None
                amount = plan.price if plan else None
                description = f"{plan_name or 'Subscription'} plan - monthly subscription"
                if amount is not None:
                    description += f" ({format_price(amount)})"
                items.append(BillingHistoryItem(
                    id=event.id, date=event.created_at, type="payment",
                    description=description, amount=amount, plan_name=plan_name,
                ))
            elif event.type == event_service.SUBSCRIPTION_PLAN_CHANGED:
                price_change = meta.get("priceChange")
                description = f"Plan changed from {meta.get('oldPlanName')} to {meta.get('newPlanName')}"
                items.append(BillingHistoryItem(
                    id=event.id, date=event.created_at, type="plan_change",
                    description=description, amount=price_change,
                    plan_name=meta.get("newPlanName"),
                ))
            else:
                items.append(BillingHistoryItem(
                    id=event.id, date=event.created_at, type="cancellation",
                    description=f"Subscription canceled ({meta.get('planName')})",
                    plan_name=meta.get("planName"),
                ))
        return BillingHistoryResponse(events=items, total=len(items))
