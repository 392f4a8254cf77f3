"""
Situation service - wires sources, the analysis engine and the monitor registry.

One cycle: fetch a batch (bounded by a timeout, degrading to an empty
batch), run the engine, log the raised alerts and evaluate the monitors
against the classified items.
"""

import asyncio
from collections.abc import Sequence

from loguru import logger

from sitmon.analysis.engine import AnalysisEngine
from sitmon.analysis.types import (
    Alert,
    AnalysisBatch,
    AnalysisResult,
    MarketQuote,
    NewsItem,
    PricePoint,
    RawNewsItem,
)
from sitmon.datasource.base import MarketSource, NewsSource
from sitmon.errors import FusionError, MonitorPersistenceError
from sitmon.monitors.registry import MonitorRegistry


class SituationService:
    def __init__(
        self,
        engine: AnalysisEngine,
        registry: MonitorRegistry,
        news_sources: Sequence[NewsSource] = (),
        market_sources: Sequence[MarketSource] = (),
        fetch_timeout: float = 20.0,
    ):
        self.engine = engine
        self.registry = registry
        self.news_sources = list(news_sources)
        self.market_sources = list(market_sources)
        self.fetch_timeout = fetch_timeout

    async def _fetch_news(self) -> list[RawNewsItem | NewsItem]:
        results = await asyncio.gather(
            *(source.fetch() for source in self.news_sources), return_exceptions=True
        )
        items: list[RawNewsItem | NewsItem] = []
        for source, result in zip(self.news_sources, results):
            if isinstance(result, Exception):
                logger.error(f"News source {source.service_id} failed: {result}")
                continue
            items.extend(result)
        return items

    async def _fetch_market(self) -> tuple[list[MarketQuote], dict[str, list[PricePoint]]]:
        quotes: list[MarketQuote] = []
        history: dict[str, list[PricePoint]] = {}

        for source in self.market_sources:
            try:
                source_quotes = await source.fetch()
                source_history = await source.fetch_history([q.symbol for q in source_quotes])
            except Exception as e:
                logger.error(f"Market source {source.service_id} failed: {e}")
                continue
            quotes.extend(source_quotes)
            history.update(source_history)

        return quotes, history

    async def fetch_batch(self) -> AnalysisBatch:
        """Collect one batch from every source; an empty batch on timeout."""

        async def collect() -> AnalysisBatch:
            news, (quotes, history) = await asyncio.gather(
                self._fetch_news(), self._fetch_market()
            )
            return AnalysisBatch(news=news, quotes=quotes, history=history)

        try:
            batch = await asyncio.wait_for(collect(), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Fetch timed out after {self.fetch_timeout}s, using empty batch")
            return AnalysisBatch()

        logger.info(
            f"Fetched batch: {len(batch.news)} news, {len(batch.quotes)} quotes, "
            f"{len(batch.history)} histories"
        )
        return batch

    async def _evaluate_monitors(self, items: Sequence[RawNewsItem | NewsItem]) -> list[Alert]:
        classified, _ = self.engine.classifier.classify_batch(items)
        try:
            return await self.registry.evaluate(classified)
        except MonitorPersistenceError as e:
            logger.error(f"Monitor state not saved: {e.message}")
            return e.alerts

    async def run_cycle(self, batch: AnalysisBatch | None = None) -> AnalysisResult | None:
        """
        Run one analysis cycle.

        Returns:
            The result, or None when fusion failed and the cached result was kept
        """
        if batch is None:
            batch = await self.fetch_batch()

        try:
            result = await self.engine.run(batch)
        except FusionError as e:
            logger.error(f"Analysis run failed at {e.stage}: {e.message}")
            return None

        recorded = await self.registry.record_alerts(result.alerts)
        monitor_alerts = await self._evaluate_monitors(batch.news)
        logger.info(
            f"Cycle done: {recorded} finding alerts, {len(monitor_alerts)} monitor alerts"
        )
        return result

    async def check_monitors(self) -> list[Alert]:
        """Evaluate the monitors against freshly fetched news."""
        if not self.registry.list_monitors(active_only=True):
            logger.info("No active monitors to check.")
            return []

        try:
            items = await asyncio.wait_for(self._fetch_news(), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"News fetch timed out after {self.fetch_timeout}s")
            items = []
        return await self._evaluate_monitors(items)
