"""
订阅管理API：查询当前订阅、换套餐、取消
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_payment_gateway
from app.core.database import get_db
from app.core.exceptions import BillingError
from app.schemas.billing import (
    CancelSubscriptionRequest,
    ChangePlanRequest,
    SubscriptionMessageResponse,
    SubscriptionResponse,
)
from app.services import event_service
from app.services.payment_gateway import MockPaymentGateway
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()

CANCEL_MESSAGE = (
    "Subscription canceled successfully. "
    "You will retain access until the end of your current billing period."
)


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def _record_failure(db: AsyncSession, event_type: str, error: Exception) -> None:
    """意外失败后尽力记录失败事件"""
    try:
        await db.rollback()
    except Exception:
        logger.debug("回滚失败", exc_info=True)
    await event_service.track_event(db, event_type, metadata={"error": str(error) or type(error).__name__})


@router.get("/current", response_model=SubscriptionMessageResponse)
async def get_current_subscription(
    user_id: Optional[str] = Query(None, alias="userId", description="按订阅所有者过滤"),
    db: AsyncSession = Depends(get_db),
):
    """获取最近创建的订阅（未传 userId 时不区分用户）"""
    try:
        subscription = await SubscriptionService(db).get_current(user_id)
    except BillingError as e:
        return _message(e.status_code, e.message)
    except Exception:
        logger.exception("获取当前订阅失败")
        return _message(500, "Failed to fetch subscription")
    return SubscriptionMessageResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        message="Subscription retrieved successfully",
    )


@router.post("/change-plan", response_model=SubscriptionMessageResponse)
async def change_plan(
    body: ChangePlanRequest,
    db: AsyncSession = Depends(get_db),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    """换套餐：不按比例计费，差价只记录在事件中"""
    if body.subscription_id is None or body.new_plan_id is None:
        return _message(400, "Missing required fields")
    try:
        subscription = await SubscriptionService(db, gateway).change_plan(
            body.subscription_id, body.new_plan_id
        )
    except BillingError as e:
        return _message(e.status_code, e.message)
    except Exception as e:
        logger.exception("换套餐失败: subscription=%s", body.subscription_id)
        await _record_failure(db, event_service.SUBSCRIPTION_PLAN_CHANGE_FAILED, e)
        return _message(500, "Failed to change plan")
    return SubscriptionMessageResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        message="Plan changed successfully",
    )


@router.post("/cancel", response_model=SubscriptionMessageResponse)
async def cancel_subscription(
    body: CancelSubscriptionRequest,
    db: AsyncSession = Depends(get_db),
    gateway: MockPaymentGateway = Depends(get_payment_gateway),
):
    """取消订阅（立即生效）"""
    if body.subscription_id is None:
        return _message(400, "Missing subscription ID")
    try:
        subscription = await SubscriptionService(db, gateway).cancel(body.subscription_id)
    except BillingError as e:
        return _message(e.status_code, e.message)
    except Exception as e:
        logger.exception("取消订阅失败: subscription=%s", body.subscription_id)
        await _record_failure(db, event_service.SUBSCRIPTION_CANCELLATION_FAILED, e)
        return _message(500, "Failed to cancel subscription")
    return SubscriptionMessageResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        message=CANCEL_MESSAGE,
    )
