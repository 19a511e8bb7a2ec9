"""
模拟支付网关：模拟外部支付 API（扣款、创建客户、订阅变更）

拒付策略：
- 三个测试卡号固定拒付（去掉空白后比较）
- 其余卡号按 failure_rate 随机拒付，随机源可注入，测试可固定结果
- 否则成功，生成进程内唯一的 payment intent / customer id
"""
import asyncio
import logging
import random
import re
import time
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)

DECLINED_CARDS = {
    "4000000000000002": "Your card was declined.",
    "4000000000000119": "Your card has insufficient funds.",
    "4000000000000127": "Your card's security code is incorrect.",
}
PROCESSING_FAILED = "Payment processing failed. Please try again."


class RandomSource(Protocol):
    def random(self) -> float: ...


class CardDetails(Protocol):
    card_number: str


@dataclass
class PaymentResult:
    success: bool
    payment_intent_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MockCustomer:
    id: str
    email: str
    name: str


def _mock_id(prefix: str) -> str:
    """毫秒时间戳 + 随机后缀，只保证进程内唯一"""
    return f"{prefix}_mock_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _clean_card_number(card_number: str) -> str:
    return re.sub(r"\s", "", card_number or "")


# ---------- 语法校验（无 Luhn、无 BIN 校验） ---------- #
def validate_card_number(card_number: str) -> bool:
    return re.fullmatch(r"[0-9]{13,19}", _clean_card_number(card_number)) is not None


def validate_expiry_date(month: str, year: str, today: Optional[date] = None) -> bool:
    """月份 1-12，两位年份，不早于当前年月；只接受 ASCII 数字"""
    month, year = str(month).strip(), str(year).strip()
    if not (re.fullmatch(r"[0-9]+", month) and re.fullmatch(r"[0-9]+", year)):
        return False
    month_num, year_num = int(month), int(year)
    today = today or date.today()
    current_year = today.year % 100
    if month_num < 1 or month_num > 12:
        return False
    if year_num < current_year:
        return False
    if year_num == current_year and month_num < today.month:
        return False
    return True


def validate_cvc(cvc: str) -> bool:
    return re.fullmatch(r"[0-9]{3,4}", cvc or "") is not None


class MockPaymentGateway:
    """模拟网关，所有调用都有人为延迟"""

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        failure_rate: float = 0.05,
        charge_delay: float = 1.5,
        charge_jitter: float = 1.0,
        customer_delay: float = 0.5,
        plan_change_delay: float = 1.5,
        cancel_delay: float = 1.0,
    ):
        self._rng = rng or random.Random()
        self.failure_rate = failure_rate
        self.charge_delay = charge_delay
        self.charge_jitter = charge_jitter
        self.customer_delay = customer_delay
        self.plan_change_delay = plan_change_delay
        self.cancel_delay = cancel_delay

    @classmethod
    def from_settings(cls, rng: Optional[RandomSource] = None) -> "MockPaymentGateway":
        return cls(
            rng=rng,
            failure_rate=settings.MOCK_PAYMENT_FAILURE_RATE,
            charge_delay=settings.MOCK_PAYMENT_DELAY_MIN,
            charge_jitter=settings.MOCK_PAYMENT_DELAY_JITTER,
            customer_delay=settings.MOCK_CUSTOMER_DELAY,
            plan_change_delay=settings.MOCK_PLAN_CHANGE_DELAY,
            cancel_delay=settings.MOCK_CANCEL_DELAY,
        )

    @staticmethod
    async def _sleep(seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def charge(
        self,
        payment_method: CardDetails,
        amount: int,
        currency: str = "usd",
    ) -> PaymentResult:
        """扣款。拒付是正常业务结果，以 success=False 返回而不是抛异常"""
        # 延迟抖动不占用注入的随机源，避免影响拒付判定
        await self._sleep(self.charge_delay + random.random() * self.charge_jitter)

        card_number = _clean_card_number(payment_method.card_number)
        last4 = card_number[-4:]

        error = DECLINED_CARDS.get(card_number)
        if error:
            logger.info("模拟扣款被拒: card=****%s reason=%s", last4, error)
            return PaymentResult(success=False, error=error)

        if self._rng.random() < self.failure_rate:
            logger.info("模拟扣款随机失败: card=****%s", last4)
            return PaymentResult(success=False, error=PROCESSING_FAILED)

        payment_intent_id = _mock_id("pi")
        logger.info(
            "模拟扣款成功: intent=%s amount=%s currency=%s card=****%s",
            payment_intent_id, amount, currency, last4,
        )
        return PaymentResult(success=True, payment_intent_id=payment_intent_id)

    async def create_customer(self, email: str, name: str) -> MockCustomer:
        await self._sleep(self.customer_delay)
        customer = MockCustomer(id=_mock_id("cus"), email=email, name=name)
        logger.info("模拟客户已创建: %s email=%s", customer.id, email)
        return customer

    async def update_subscription(self, subscription_id: int, new_plan_id: int) -> None:
        """模拟网关侧的订阅变更，无按比例计费"""
        await self._sleep(self.plan_change_delay)
        logger.info("模拟网关订阅变更: subscription=%s plan=%s", subscription_id, new_plan_id)

    async def cancel_subscription(self, subscription_id: int) -> None:
        await self._sleep(self.cancel_delay)
        logger.info("模拟网关订阅取消: subscription=%s", subscription_id)

