"""
套餐目录：只读
"""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.plan import Plan


def format_price(price_in_cents: int) -> str:
    """999 -> $9.99"""
    sign = "-" if price_in_cents < 0 else ""
    return f"{sign}${abs(price_in_cents) / 100:,.2f}"


class PlanService:
    """套餐服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_plans(self) -> List[Plan]:
        """获取上架套餐，按价格升序"""
        result = await self.db.execute(
            select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.price, Plan.id)
        )
        return list(result.scalars().all())

    async def get_plan(self, plan_id: int) -> Optional[Plan]:
        """获取套餐"""
        result = await self.db.execute(select(Plan).where(Plan.id == plan_id))
        return result.scalar_one_or_none()
