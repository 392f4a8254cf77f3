"""
数据库Repository层 - 封装数据访问逻辑
"""

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitmon.analysis.types import Monitor
from sitmon.datastore.models import MonitorDB


class MonitorRepository:
    """关键词监控Repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> list[Monitor]:
        """按创建时间读取全部监控"""
        result = await self.session.execute(
            select(MonitorDB).order_by(MonitorDB.created_at, MonitorDB.id)
        )
        return [
            Monitor(
                id=row.id,
                query=row.query,
                alert_threshold=row.alert_threshold,
                check_interval=row.check_interval,
                is_active=row.is_active,
                created_at=row.created_at,
                last_checked=row.last_checked,
                alert_count=row.alert_count,
            )
            for row in result.scalars().all()
        ]

    async def replace_all(self, monitors: list[Monitor]) -> None:
        """用当前列表整体替换表内容（在同一事务内）"""
        await self.session.execute(delete(MonitorDB))
        for monitor in monitors:
            self.session.add(MonitorDB(**monitor.model_dump()))
        await self.session.flush()
        logger.debug(f"Saved {len(monitors)} monitors")
