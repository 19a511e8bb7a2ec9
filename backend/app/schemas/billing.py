"""
计费相关Schema（对外 JSON 使用 camelCase）
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """对外字段 camelCase，代码内 snake_case"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------- 套餐 ---------- #
class PlanResponse(CamelModel):
    """套餐响应"""
    id: int
    name: str
    description: Optional[str] = None
    price: int
    interval: str
    features: List[str] = []
    is_active: bool = True

    @field_validator("features", mode="before")
    @classmethod
    def _decode_features(cls, v: Any) -> Any:
        # 库中存的是 JSON 字符串
        if isinstance(v, str):
            try:
                v = json.loads(v) if v else []
            except ValueError:
                return []
        return v or []


class PlanListResponse(BaseModel):
    """套餐列表响应"""
    plans: List[PlanResponse]


class PlanSummary(CamelModel):
    name: str
    price: int


# ---------- 订阅 ---------- #
class SubscriptionResponse(CamelModel):
    """订阅响应（含套餐）"""
    id: int
    user_id: str
    plan_id: int
    status: str
    current_period_start: datetime
    current_period_end: datetime
    canceled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    plan: PlanResponse


class SubscriptionMessageResponse(BaseModel):
    """订阅管理接口统一响应"""
    subscription: SubscriptionResponse
    message: str


class CancelSubscriptionRequest(CamelModel):
    subscription_id: Optional[int] = None


class ChangePlanRequest(CamelModel):
    subscription_id: Optional[int] = None
    new_plan_id: Optional[int] = None


# ---------- 结账 ---------- #
class CustomerInfo(CamelModel):
    email: str
    name: str


class PaymentMethod(CamelModel):
    """卡信息，仅做语法校验，不落库"""
    card_number: str
    expiry_month: str
    expiry_year: str
    cvc: str
    cardholder_name: str = ""


class CheckoutRequest(CamelModel):
    """字段缺失在服务层统一按 400 处理"""
    plan_id: Optional[int] = None
    customer_info: Optional[CustomerInfo] = None
    payment_method: Optional[PaymentMethod] = None


class CheckoutSubscription(CamelModel):
    id: int
    status: str
    current_period_end: datetime
    plan: PlanSummary


class CheckoutResponse(CamelModel):
    success: bool = True
    subscription: CheckoutSubscription
    payment_intent_id: str
    customer_id: str


# ---------- 行为事件 ---------- #
class EventCreate(CamelModel):
    type: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# ---------- 账单历史 ---------- #
class BillingHistoryItem(CamelModel):
    id: int
    date: datetime
    type: str  # payment | plan_change | cancellation
    description: str
    amount: Optional[int] = None
    status: str = "success"
    plan_name: Optional[str] = None


class BillingHistoryResponse(BaseModel):
    events: List[BillingHistoryItem]
    total: int
