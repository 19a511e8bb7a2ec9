"""
行为事件API：前端上报 pricing_viewed 等事件
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.billing import EventCreate
from app.services import event_service

router = APIRouter()


@router.post("")
async def track(body: EventCreate, db: AsyncSession = Depends(get_db)):
    """记录一条事件"""
    if not body.type:
        return JSONResponse(status_code=400, content={"error": "Event type is required"})
    ok = await event_service.track_event(db, body.type, body.user_id, body.metadata)
    if not ok:
        return JSONResponse(status_code=500, content={"error": "Failed to track event"})
    return {"success": True}
