"""
账单历史API
"""
import logging
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.billing import BillingHistoryResponse
from app.services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/history", response_model=BillingHistoryResponse)
async def get_billing_history(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """账单历史（由事件推导，最新在前）"""
    try:
        return await BillingService(db).get_billing_history(limit)
    except Exception:
        logger.exception("获取账单历史失败")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch billing history"})
