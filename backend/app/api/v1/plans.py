"""
套餐API
"""
import asyncio
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.schemas.billing import PlanListResponse, PlanResponse
from app.services.plan_service import PlanService
from app.services import cache_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=PlanListResponse)
async def list_plans(db: AsyncSession = Depends(get_db)):
    """获取上架套餐列表，按价格升序（带 Redis 缓存）"""
    cache_key = cache_service.key_active_plans()
    try:
        cached = await asyncio.to_thread(cache_service.get, cache_key)
        if cached is not None:
            return PlanListResponse(**cached)
        plans = await PlanService(db).list_active_plans()
        out = PlanListResponse(plans=[PlanResponse.model_validate(p) for p in plans])
    except Exception:
        logger.exception("获取套餐列表失败")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch plans"})
    ttl = getattr(settings, "CACHE_TTL_PLANS", 300)
    await asyncio.to_thread(cache_service.set, cache_key, out.model_dump(by_alias=True), ttl)
    return out


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: int, db: AsyncSession = Depends(get_db)):
    """获取套餐详情"""
    try:
        plan = await PlanService(db).get_plan(plan_id)
    except Exception:
        logger.exception("获取套餐失败: %s", plan_id)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch plan"})
    if not plan:
        return JSONResponse(status_code=404, content={"error": "Plan not found"})
    return plan
