"""
订阅生命周期：创建、查询、换套餐、取消

状态机：ACTIVE -> CANCELED（终态），ACTIVE -> ACTIVE（换套餐）。
换套餐不按比例计费也不立即扣款，差价只写进事件 metadata。
取消立即生效（状态马上变为 CANCELED），并非延后到周期结束。
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidStateError, NotFoundError
from app.models.plan import Plan
from app.models.subscription import Subscription, SubscriptionStatus
from app.services import event_service
from app.services.payment_gateway import MockPaymentGateway
from app.services.plan_service import PlanService, format_price

logger = logging.getLogger(__name__)

# getCurrent 认可的状态
VISIBLE_STATUSES = (
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.TRIALING.value,
    SubscriptionStatus.CANCELED.value,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionService:
    """订阅服务类"""

    def __init__(self, db: AsyncSession, gateway: Optional[MockPaymentGateway] = None):
        self.db = db
        self.gateway = gateway
        self.plans = PlanService(db)

    async def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        """按 id 读取订阅（含套餐），总是从库中刷新"""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.id == subscription_id)
            .options(selectinload(Subscription.plan))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require(self, subscription_id: int) -> Subscription:
        subscription = await self.get_subscription(subscription_id)
        if not subscription:
            raise NotFoundError("Subscription not found")
        return subscription

    async def create(self, customer_id: str, plan_id: int) -> Subscription:
        """创建 ACTIVE 订阅，周期为 [now, now + SUBSCRIPTION_PERIOD_DAYS)"""
        plan = await self.plans.get_plan(plan_id)
        if not plan:
            raise NotFoundError("Plan not found")
        now = _utcnow()
        subscription = Subscription(
            user_id=customer_id,
            plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE.value,
            current_period_start=now,
            current_period_end=now + timedelta(days=settings.SUBSCRIPTION_PERIOD_DAYS),
        )
        self.db.add(subscription)
        await self.db.commit()
        logger.info("订阅已创建: %s customer=%s plan=%s", subscription.id, customer_id, plan.name)
        return await self.get_subscription(subscription.id)

    async def get_current(self, user_id: Optional[str] = None) -> Subscription:
        """最近创建的可见订阅；不传 user_id 时不区分用户（演示用的捷径）"""
        stmt = (
            select(Subscription)
            .where(Subscription.status.in_(VISIBLE_STATUSES))
            .options(selectinload(Subscription.plan))
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if user_id:
            stmt = stmt.where(Subscription.user_id == user_id)
        result = await self.db.execute(stmt)
        subscription = result.scalar_one_or_none()
        if not subscription:
            raise NotFoundError("No subscription found")
        return subscription

    async def change_plan(self, subscription_id: int, new_plan_id: int) -> Subscription:
        """替换套餐引用，只允许 ACTIVE 订阅"""
        subscription = await self._require(subscription_id)
        new_plan: Optional[Plan] = await self.plans.get_plan(new_plan_id)
        if not new_plan:
            raise NotFoundError("Plan not found")
        if subscription.status != SubscriptionStatus.ACTIVE.value:
            raise InvalidStateError("Can only change plans for active subscriptions")

        old_plan = subscription.plan
        logger.info(
            "换套餐: subscription=%s %s (%s) -> %s (%s)",
            subscription_id, old_plan.name, format_price(old_plan.price),
            new_plan.name, format_price(new_plan.price),
        )
        if self.gateway:
            await self.gateway.update_subscription(subscription_id, new_plan.id)

        subscription.plan_id = new_plan.id
        subscription.updated_at = _utcnow()
        await self.db.commit()

        await event_service.track_event(
            self.db,
            event_service.SUBSCRIPTION_PLAN_CHANGED,
            metadata={
                "subscriptionId": subscription_id,
                "oldPlanId": old_plan.id,
                "newPlanId": new_plan.id,
                "oldPlanName": old_plan.name,
                "newPlanName": new_plan.name,
                "priceChange": new_plan.price - old_plan.price,
            },
        )
        # 事件写入失败会回滚会话、使已加载对象过期，返回前必须重新读取
        return await self.get_subscription(subscription_id)

    async def cancel(self, subscription_id: int) -> Subscription:
        """立即取消，只允许 ACTIVE 订阅"""
        subscription = await self._require(subscription_id)
        if subscription.status != SubscriptionStatus.ACTIVE.value:
            raise InvalidStateError("Can only cancel active subscriptions")

        if self.gateway:
            await self.gateway.cancel_subscription(subscription_id)

        plan = subscription.plan
        now = _utcnow()
        subscription.status = SubscriptionStatus.CANCELED.value
        subscription.canceled_at = now
        subscription.updated_at = now
        await self.db.commit()
        logger.info("订阅已取消: %s plan=%s", subscription_id, plan.name)

        await event_service.track_event(
            self.db,
            event_service.SUBSCRIPTION_CANCELED,
            metadata={
                "subscriptionId": subscription_id,
                "planId": plan.id,
                "planName": plan.name,
                "reason": "user_requested",
            },
        )
        return await self.get_subscription(subscription_id)
