"""
Redis 缓存服务：通用 get/set/delete，目前用于套餐列表加速
Redis 不可用或关闭缓存时全部退化为未命中，不影响请求
"""
import json
import logging
from typing import Any, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

_redis_client = None


def _get_redis():
    """获取 Redis 客户端（懒加载）"""
    global _redis_client
    if _redis_client is None:
        try:
            import redis
            _redis_client = redis.Redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=1,
                socket_timeout=1,
            )
        except Exception as e:
            logger.warning("缓存 Redis 连接失败，缓存将不生效: %s", e)
    return _redis_client


def _key(name: str) -> str:
    prefix = getattr(settings, "CACHE_KEY_PREFIX", "cache:")
    return f"{prefix}{name}"


def get(key: str) -> Optional[Any]:
    """从缓存读取，反序列化 JSON。不存在或异常返回 None。"""
    if not getattr(settings, "CACHE_ENABLED", True):
        return None
    r = _get_redis()
    if not r:
        return None
    try:
        raw = r.get(_key(key))
        if raw is None:
            return None
        return json.loads(raw)
    except Exception as e:
        logger.debug("缓存 get 失败 %s: %s", key, e)
        return None


def set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """写入缓存，value 会 JSON 序列化。ttl 秒，默认用 CACHE_TTL_PLANS。"""
    if not getattr(settings, "CACHE_ENABLED", True):
        return False
    r = _get_redis()
    if not r:
        return False
    if ttl is None:
        ttl = getattr(settings, "CACHE_TTL_PLANS", 300)
    try:
        r.setex(
            _key(key),
            ttl,
            json.dumps(value, ensure_ascii=False, default=str),
        )
        return True
    except Exception as e:
        logger.debug("缓存 set 失败 %s: %s", key, e)
        return False


def delete_by_prefix(prefix: str) -> int:
    """按前缀删除。返回删除的 key 数量。"""
    if not getattr(settings, "CACHE_ENABLED", True):
        return 0
    r = _get_redis()
    if not r:
        return 0
    full_prefix = _key(prefix)
    try:
        count = 0
        for k in r.scan_iter(match=f"{full_prefix}*"):
            r.delete(k)
            count += 1
        return count
    except Exception as e:
        logger.debug("缓存 delete_by_prefix 失败 %s: %s", prefix, e)
        return 0


# ---------- 业务 key 约定，便于统一失效 ---------- #
def key_active_plans() -> str:
    return "plans:active"


def prefix_plans() -> str:
    return "plans:"


def invalidate_plan_cache() -> None:
    """套餐变更（如重新 seed）后调用"""
    delete_by_prefix(prefix_plans())
