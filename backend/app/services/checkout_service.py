"""
结账编排：套餐查询 -> 创建客户 -> 扣款 -> 创建订阅 -> 记录事件

各步骤之间没有事务边界，也没有补偿：扣款成功后若建订阅失败，不会退款；
已写入的事件不会回滚。重复提交同一请求会重新扣款并新建订阅（非幂等）。
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidRequestError, NotFoundError, PaymentDeclinedError
from app.models.subscription import Subscription
from app.schemas.billing import CheckoutRequest
from app.services import event_service
from app.services.payment_gateway import (
    MockPaymentGateway,
    validate_card_number,
    validate_cvc,
    validate_expiry_date,
)
from app.services.plan_service import PlanService, format_price
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    subscription: Subscription
    payment_intent_id: str
    customer_id: str


class CheckoutService:
    """结账服务类"""

    def __init__(self, db: AsyncSession, gateway: MockPaymentGateway):
        self.db = db
        self.gateway = gateway
        self.plans = PlanService(db)
        self.subscriptions = SubscriptionService(db, gateway)

    async def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        if request.plan_id is None or not request.customer_info or not request.payment_method:
            raise InvalidRequestError("Missing required fields")

        customer_info = request.customer_info
        payment_method = request.payment_method
        logger.info("开始结账: plan=%s email=%s", request.plan_id, customer_info.email)
        await event_service.track_event(
            self.db,
            event_service.CHECKOUT_STARTED,
            customer_info.email,
            {"planId": request.plan_id},
        )

        # 卡信息校验先于套餐查询：未知套餐 + 非法卡号返回 400 而不是 404
        if not (
            validate_card_number(payment_method.card_number)
            and validate_expiry_date(payment_method.expiry_month, payment_method.expiry_year)
            and validate_cvc(payment_method.cvc)
        ):
            raise InvalidRequestError("Invalid payment details")

        plan = await self.plans.get_plan(request.plan_id)
        if not plan:
            raise NotFoundError("Plan not found")
        logger.info("套餐: %s %s", plan.name, format_price(plan.price))

        customer = await self.gateway.create_customer(customer_info.email, customer_info.name)

        payment = await self.gateway.charge(payment_method, plan.price, settings.PAYMENT_CURRENCY)
        if not payment.success:
            logger.info("支付失败: %s", payment.error)
            await event_service.track_event(
                self.db,
                event_service.CHECKOUT_FAILED,
                customer_info.email,
                {"planId": plan.id, "error": payment.error},
            )
            raise PaymentDeclinedError(payment.error or "Payment declined")

        subscription_id = (await self.subscriptions.create(customer.id, plan.id)).id

        await event_service.track_event(
            self.db,
            event_service.CHECKOUT_COMPLETED,
            customer_info.email,
            {
                "planId": plan.id,
                "subscriptionId": subscription_id,
                "paymentIntentId": payment.payment_intent_id,
            },
        )
        # 事件失败时会话已回滚，重新读取订阅再返回
        return CheckoutResult(
            subscription=await self.subscriptions.get_subscription(subscription_id),
            payment_intent_id=payment.payment_intent_id,
            customer_id=customer.id,
        )
