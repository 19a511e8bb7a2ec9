"""
行为事件：只追加，用于分析，不参与状态重建
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from app.core.database import Base


class Event(Base):
    """事件表"""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(64), nullable=False, index=True)  # pricing_viewed, checkout_completed, subscription_canceled 等
    user_id = Column(String(255), nullable=True, index=True)
    # metadata 是 Declarative 保留名，属性用 event_metadata，列名仍为 metadata
    event_metadata = Column("metadata", Text, nullable=True)  # JSON 字符串
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
