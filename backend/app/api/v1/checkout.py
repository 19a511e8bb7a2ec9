"""
结账API
"""
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_payment_gateway
from app.core.database import get_db
from app.core.exceptions import BillingError
from app.schemas.billing import CheckoutRequest, CheckoutResponse, CheckoutSubscription, PlanSummary
from app.services.checkout_service import CheckoutService
from app.services.payment_gateway import MockPaymentGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    """模拟结账：扣款成功后创建订阅。拒付返回 402"""
    try:
        result = await CheckoutService(db, gateway).checkout(body)
    except BillingError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception:
        logger.exception("结账处理异常")
        return JSONResponse(status_code=500, content={"error": "Checkout processing failed"})

    subscription = result.subscription
    return CheckoutResponse(
        success=True,
        subscription=CheckoutSubscription(
            id=subscription.id,
            status=subscription.status,
            current_period_end=subscription.current_period_end,
            plan=PlanSummary(name=subscription.plan.name, price=subscription.plan.price),
        ),
        payment_intent_id=result.payment_intent_id,
        customer_id=result.customer_id,
    )
