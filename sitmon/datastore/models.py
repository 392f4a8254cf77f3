"""
数据库模型定义
使用SQLAlchemy 2.0+的声明式映射
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sitmon.analysis.types import utcnow


class Base(AsyncAttrs, DeclarativeBase):
    """所有模型的基类"""

    pass


class MonitorDB(Base):
    """关键词监控表"""

    __tablename__ = "monitors"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    alert_threshold: Mapped[float] = mapped_column(Float, default=0.7, nullable=False)
    check_interval: Mapped[int] = mapped_column(Integer, default=3600, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_checked: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    alert_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Monitor(id={self.id}, query={self.query[:50]})>"
