"""
Static sources serving a fixed batch, for offline runs and tests.
"""

from pathlib import Path

from loguru import logger

from sitmon.analysis.types import AnalysisBatch, MarketQuote, NewsItem, PricePoint, RawNewsItem
from sitmon.datasource.base import MarketSource, NewsSource


def load_batch_file(path: str | Path) -> AnalysisBatch:
    """Read an ``AnalysisBatch`` from a JSON file."""
    batch = AnalysisBatch.model_validate_json(Path(path).read_text())
    logger.info(
        f"Loaded batch from {path}: {len(batch.news)} news, {len(batch.quotes)} quotes"
    )
    return batch


class StaticNewsSource(NewsSource):
    def __init__(self, items: list[RawNewsItem | NewsItem] | None = None):
        self.items = list(items or [])

    @property
    def service_id(self) -> str:
        return "static-news"

    async def fetch(self) -> list[RawNewsItem | NewsItem]:
        return list(self.items)


class StaticMarketSource(MarketSource):
    def __init__(
        self,
        quotes: list[MarketQuote] | None = None,
        history: dict[str, list[PricePoint]] | None = None,
    ):
        self.quotes = list(quotes or [])
        self.history = dict(history or {})

    @property
    def service_id(self) -> str:
        return "static-market"

    async def fetch(self) -> list[MarketQuote]:
        return list(self.quotes)

    async def fetch_history(self, symbols: list[str]) -> dict[str, list[PricePoint]]:
        return {s: list(bars) for s, bars in self.history.items() if s in symbols}


def sources_from_file(path: str | Path) -> tuple[StaticNewsSource, StaticMarketSource]:
    batch = load_batch_file(path)
    return StaticNewsSource(batch.news), StaticMarketSource(batch.quotes, batch.history)
