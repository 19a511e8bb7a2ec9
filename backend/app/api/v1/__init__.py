"""
API v1 路由
"""
from fastapi import APIRouter
from app.api.v1 import plans, checkout, subscription, analytics, billing

api_router = APIRouter()

# 注册子路由
api_router.include_router(plans.router, prefix="/plans", tags=["套餐"])
api_router.include_router(checkout.router, prefix="/checkout", tags=["结账"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["订阅"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["行为事件"])
api_router.include_router(billing.router, prefix="/billing", tags=["计费"])
