"""测试辅助：固定随机源、零延迟网关、请求数据"""
from datetime import date

from app.schemas.billing import CustomerInfo, PaymentMethod
from app.services.payment_gateway import MockPaymentGateway

SUCCESS_CARD = "4242424242424242"


class FixedRandom:
    """固定返回值的随机源，用来钉住随机拒付分支"""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def make_gateway(roll: float = 0.99) -> MockPaymentGateway:
    return MockPaymentGateway(
        rng=FixedRandom(roll),
        charge_delay=0,
        charge_jitter=0,
        customer_delay=0,
        plan_change_delay=0,
        cancel_delay=0,
    )


def future_expiry() -> tuple[str, str]:
    return "12", f"{(date.today().year + 3) % 100:02d}"


def make_payment_method(card_number: str = SUCCESS_CARD) -> PaymentMethod:
    month, year = future_expiry()
    return PaymentMethod(
        card_number=card_number,
        expiry_month=month,
        expiry_year=year,
        cvc="123",
        cardholder_name="Ada Lovelace",
    )


def make_customer() -> CustomerInfo:
    return CustomerInfo(email="ada@example.com", name="Ada Lovelace")


def checkout_payload(plan_id, card_number: str = SUCCESS_CARD) -> dict:
    month, year = future_expiry()
    return {
        "planId": plan_id,
        "customerInfo": {"email": "ada@example.com", "name": "Ada Lovelace"},
        "paymentMethod": {
            "cardNumber": card_number,
            "expiryMonth": month,
            "expiryYear": year,
            "cvc": "123",
            "cardholderName": "Ada Lovelace",
        },
    }

