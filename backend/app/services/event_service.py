"""
行为事件记录：写入 events 表，尽力而为
失败只记日志并返回 False，绝不影响调用方的主流程
"""
import json
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.models.event import Event

logger = logging.getLogger(__name__)

# 已知事件类型（type 本身是自由字符串，不做限制）
CHECKOUT_STARTED = "checkout_started"
CHECKOUT_COMPLETED = "checkout_completed"
CHECKOUT_FAILED = "checkout_failed"
SUBSCRIPTION_PLAN_CHANGED = "subscription_plan_changed"
SUBSCRIPTION_PLAN_CHANGE_FAILED = "subscription_plan_change_failed"
SUBSCRIPTION_CANCELED = "subscription_canceled"
SUBSCRIPTION_CANCELLATION_FAILED = "subscription_cancellation_failed"


async def track_event(
    db: AsyncSession,
    event_type: str,
    user_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> bool:
    """写入一条事件。未启用 EVENT_TRACKING_ENABLED 时跳过并视为成功。"""
    if not getattr(settings, "EVENT_TRACKING_ENABLED", True):
        return True
    try:
        entry = Event(
            type=event_type,
            user_id=user_id,
            event_metadata=json.dumps(metadata, ensure_ascii=False, default=str) if metadata else None,
        )
        db.add(entry)
        await db.commit()
        logger.info("事件已记录: %s user=%s", event_type, user_id)
        return True
    except Exception as e:
        logger.warning("事件写入失败 %s: %s", event_type, e)
        try:
            await db.rollback()
        except Exception:
            logger.debug("事件写入失败后回滚异常", exc_info=True)
        return False


def decode_metadata(event: Event) -> dict[str, Any]:
    """读取事件 metadata，非法 JSON 返回空字典"""
    if not event.event_metadata:
        return {}
    try:
        value = json.loads(event.event_metadata)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}
