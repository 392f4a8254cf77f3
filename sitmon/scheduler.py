"""
Analysis scheduler
使用APScheduler定期执行分析周期和监控检查
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from sitmon.analysis.types import AnalysisResult
from sitmon.service import SituationService
from sitmon.utils import safe_job


class AnalysisScheduler:
    """分析定时任务调度器"""

    def __init__(
        self,
        service: SituationService,
        analysis_interval_minutes: int = 15,
        monitor_interval_minutes: int = 5,
    ):
        self.service = service
        self.analysis_interval_minutes = analysis_interval_minutes
        self.monitor_interval_minutes = monitor_interval_minutes
        self.scheduler = AsyncIOScheduler()
        self._is_running = False

    @safe_job
    async def analysis_job(self) -> None:
        """分析任务"""
        logger.info("Starting scheduled analysis...")
        result = await self.service.run_cycle()
        if result is not None:
            logger.info(f"Scheduled analysis completed: {result.summary}")

    @safe_job
    async def monitor_job(self) -> None:
        """监控检查任务"""
        alerts = await self.service.check_monitors()
        if alerts:
            logger.info(f"Scheduled monitor check raised {len(alerts)} alerts")

    def start(self) -> None:
        """启动调度器"""
        if self._is_running:
            logger.warning("Analysis scheduler is already running")
            return

        self.scheduler.add_job(
            self.analysis_job,
            trigger="interval",
            minutes=self.analysis_interval_minutes,
            id="analysis_job",
            name="Situation Analysis",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.monitor_job,
            trigger="interval",
            minutes=self.monitor_interval_minutes,
            id="monitor_job",
            name="Monitor Check",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Analysis scheduler started: analysis every {self.analysis_interval_minutes} min, "
            f"monitors every {self.monitor_interval_minutes} min"
        )

    def stop(self) -> None:
        """停止调度器"""
        if not self._is_running:
            logger.warning("Analysis scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Analysis scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running

    async def run_now(self) -> AnalysisResult | None:
        """立即执行一次分析（手动触发）"""
        logger.info("Manual analysis triggered")
        return await self.service.run_cycle()
