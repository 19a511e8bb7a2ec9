"""
初始化数据：写入默认套餐

    python -m app.initial_data            # 套餐表为空时写入
    python -m app.initial_data --reset    # 清空订阅/事件/套餐后重新写入
"""
import argparse
import asyncio
import json
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import AsyncSessionLocal, Base, engine
from app.core.logging import setup_logging
from app.models import Event, Plan, Subscription
from app.services import cache_service

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "name": "Basic",
        "description": "Perfect for individuals getting started",
        "price": 999,
        "interval": "month",
        "features": ["10 projects", "Basic analytics", "Email support"],
    },
    {
        "name": "Pro",
        "description": "For growing teams and businesses",
        "price": 2999,
        "interval": "month",
        "features": ["Unlimited projects", "Advanced analytics", "Priority support", "Team collaboration"],
    },
    {
        "name": "Enterprise",
        "description": "Custom solution for large organizations",
        "price": 9999,
        "interval": "month",
        "features": ["Everything in Pro", "Custom integrations", "Dedicated support", "SLA guarantee"],
    },
]


async def seed_plans(db: AsyncSession, reset: bool = False) -> list[Plan]:
    """写入默认套餐，返回本次新建的套餐（已有数据且不 reset 时返回空列表）"""
    if reset:
        await db.execute(delete(Subscription))
        await db.execute(delete(Event))
        await db.execute(delete(Plan))
        await db.commit()
    else:
        count = await db.scalar(select(func.count()).select_from(Plan))
        if count:
            logger.info("套餐已存在 (%s 条)，跳过 seed", count)
            return []

    plans = [
        Plan(**{**data, "features": json.dumps(data["features"])})
        for data in DEFAULT_PLANS
    ]
    db.add_all(plans)
    await db.commit()
    await asyncio.to_thread(cache_service.invalidate_plan_cache)
    logger.info("已写入套餐: %s", ", ".join(f"{p.name}={p.id}" for p in plans))
    return plans


async def _main(reset: bool) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        await seed_plans(db, reset=reset)
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="写入默认套餐")
    parser.add_argument("--reset", action="store_true", help="清空订阅、事件和套餐后重新写入")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(_main(args.reset))
