"""Tests for the situation service, the scheduler and the job wrapper."""

import asyncio

import pytest

from conftest import make_quote, make_raw_news
from sitmon.analysis.engine import AnalysisEngine
from sitmon.analysis.trends import TrendAnalyzer
from sitmon.analysis.types import AnalysisBatch, ClassifiedBatch, RiskLevel, RunStatus
from sitmon.datasource.base import MarketSource, NewsSource
from sitmon.datasource.static import StaticMarketSource, StaticNewsSource
from sitmon.monitors.registry import MonitorRegistry
from sitmon.scheduler import AnalysisScheduler
from sitmon.service import SituationService
from sitmon.utils import safe_job


class SlowNewsSource(NewsSource):
    @property
    def service_id(self) -> str:
        return "slow-news"

    async def fetch(self) -> list:
        await asyncio.sleep(1)
        return [make_raw_news("Too late", item_id="late")]


class BrokenNewsSource(NewsSource):
    @property
    def service_id(self) -> str:
        return "broken-news"

    async def fetch(self) -> list:
        raise ConnectionError("feed unreachable")


class BrokenMarketSource(MarketSource):
    @property
    def service_id(self) -> str:
        return "broken-market"

    async def fetch(self) -> list:
        raise ConnectionError("api unreachable")


class MisplacedTrendAnalyzer:
    name = "patterns"

    def analyze(self, batch: ClassifiedBatch) -> list:
        return TrendAnalyzer().analyze(batch)


def static_service(
    batch: AnalysisBatch, registry: MonitorRegistry, **kwargs
) -> SituationService:
    return SituationService(
        engine=AnalysisEngine(),
        registry=registry,
        news_sources=[StaticNewsSource(batch.news)],
        market_sources=[StaticMarketSource(batch.quotes, batch.history)],
        **kwargs,
    )


class TestFetchBatch:
    """Tests for SituationService.fetch_batch."""

    @pytest.mark.asyncio
    async def test_collects_every_source(
        self, mixed_batch: AnalysisBatch, registry: MonitorRegistry
    ) -> None:
        batch = await static_service(mixed_batch, registry).fetch_batch()

        assert [i.id for i in batch.news] == [i.id for i in mixed_batch.news]
        assert [q.symbol for q in batch.quotes] == ["BTC", "ETH", "SOL"]
        assert set(batch.history) == {"BTC", "ETH"}

    @pytest.mark.asyncio
    async def test_failing_sources_are_skipped(self, registry: MonitorRegistry) -> None:
        service = SituationService(
            engine=AnalysisEngine(),
            registry=registry,
            news_sources=[
                BrokenNewsSource(),
                StaticNewsSource([make_raw_news("Kept", item_id="k")]),
            ],
            market_sources=[
                BrokenMarketSource(),
                StaticMarketSource([make_quote("BTC", 1.0)]),
            ],
        )
        batch = await service.fetch_batch()

        assert [i.id for i in batch.news] == ["k"]
        assert [q.symbol for q in batch.quotes] == ["BTC"]

    @pytest.mark.asyncio
    async def test_timeout_gives_empty_batch(self, registry: MonitorRegistry) -> None:
        service = SituationService(
            engine=AnalysisEngine(),
            registry=registry,
            news_sources=[SlowNewsSource()],
            fetch_timeout=0.05,
        )
        batch = await service.fetch_batch()
        assert batch.news == []
        assert batch.quotes == []


class TestRunCycle:
    """Tests for SituationService.run_cycle."""

    @pytest.mark.asyncio
    async def test_full_cycle(self, mixed_batch: AnalysisBatch, registry: MonitorRegistry) -> None:
        monitor = await registry.add("ukraine", alert_threshold=0.5)
        service = static_service(mixed_batch, registry)

        result = await service.run_cycle()

        assert result is not None
        assert result.status == RunStatus.COMPLETE
        assert await service.engine.latest() is result
        assert result.alerts
        assert len(registry.alerts) == len(result.alerts) + 1
        monitor_alerts = [a for a in registry.alerts if a.monitor_id == monitor.id]
        assert len(monitor_alerts) == 1
        assert monitor_alerts[0].severity == RiskLevel.CRITICAL

    @pytest.mark.asyncio
    async def test_explicit_batch(
        self, bitcoin_batch: AnalysisBatch, registry: MonitorRegistry
    ) -> None:
        service = SituationService(engine=AnalysisEngine(), registry=registry)
        result = await service.run_cycle(bitcoin_batch)
        assert result.metadata.news_count == 1

    @pytest.mark.asyncio
    async def test_fusion_failure_returns_none(
        self, bitcoin_batch: AnalysisBatch, registry: MonitorRegistry
    ) -> None:
        service = SituationService(
            engine=AnalysisEngine(analyzers=[MisplacedTrendAnalyzer()]), registry=registry
        )
        assert await service.run_cycle(bitcoin_batch) is None
        assert registry.alerts == ()


class TestCheckMonitors:
    """Tests for SituationService.check_monitors."""

    @pytest.mark.asyncio
    async def test_no_active_monitors(
        self, mixed_batch: AnalysisBatch, registry: MonitorRegistry
    ) -> None:
        assert await static_service(mixed_batch, registry).check_monitors() == []

    @pytest.mark.asyncio
    async def test_fresh_news_evaluated(
        self, mixed_batch: AnalysisBatch, registry: MonitorRegistry
    ) -> None:
        await registry.add("war", alert_threshold=0.5)
        alerts = await static_service(mixed_batch, registry).check_monitors()
        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_timeout_evaluates_nothing(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("late", alert_threshold=0.5)
        service = SituationService(
            engine=AnalysisEngine(),
            registry=registry,
            news_sources=[SlowNewsSource()],
            fetch_timeout=0.05,
        )
        assert await service.check_monitors() == []
        assert registry.get(monitor.id).last_checked is not None


class FailingService:
    async def run_cycle(self):
        raise RuntimeError("cycle exploded")

    async def check_monitors(self):
        raise RuntimeError("monitors exploded")


class TestAnalysisScheduler:
    """Tests for AnalysisScheduler."""

    @pytest.mark.asyncio
    async def test_start_and_stop(
        self, mixed_batch: AnalysisBatch, registry: MonitorRegistry
    ) -> None:
        scheduler = AnalysisScheduler(
            static_service(mixed_batch, registry),
            analysis_interval_minutes=30,
            monitor_interval_minutes=10,
        )

        scheduler.start()
        try:
            assert scheduler.is_running()
            assert scheduler.scheduler.get_job("analysis_job") is not None
            assert scheduler.scheduler.get_job("monitor_job") is not None
            scheduler.start()
            assert len(scheduler.scheduler.get_jobs()) == 2
        finally:
            scheduler.stop()

        assert not scheduler.is_running()

    @pytest.mark.asyncio
    async def test_run_now(self, mixed_batch: AnalysisBatch, registry: MonitorRegistry) -> None:
        scheduler = AnalysisScheduler(static_service(mixed_batch, registry))
        result = await scheduler.run_now()
        assert result is not None
        assert result.metadata.news_count == len(mixed_batch.news)

    @pytest.mark.asyncio
    async def test_jobs_survive_failures(self) -> None:
        scheduler = AnalysisScheduler(FailingService())
        assert await scheduler.analysis_job() is None
        assert await scheduler.monitor_job() is None


class TestSafeJob:
    """Tests for the safe_job decorator."""

    @pytest.mark.asyncio
    async def test_returns_value(self) -> None:
        @safe_job
        async def add(a: int, b: int = 2) -> int:
            return a + b

        assert await add(1) == 3
        assert add.__name__ == "add"

    @pytest.mark.asyncio
    async def test_swallows_errors(self) -> None:
        @safe_job
        async def explode() -> None:
            raise ValueError("boom")

        assert await explode() is None
