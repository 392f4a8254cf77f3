"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta
from typing import Any

import pytest

from sitmon.analysis.config import AnalysisConfig
from sitmon.analysis.engine import AnalysisEngine
from sitmon.analysis.types import (
    AnalysisBatch,
    ClassifiedBatch,
    MarketQuote,
    NewsItem,
    PricePoint,
    RawNewsItem,
)
from sitmon.monitors.registry import MonitorRegistry
from sitmon.monitors.store import InMemoryMonitorStore

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0)


def make_raw_news(
    title: str,
    description: str = "",
    item_id: str | None = None,
    source: str = "Reuters",
    published_at: datetime | None = None,
    **kwargs: Any,
) -> RawNewsItem:
    """Create an unclassified news item with every required field set."""
    slug = item_id or title.lower().replace(" ", "-")[:40]
    return RawNewsItem(
        id=item_id,
        title=title,
        description=description,
        url=f"https://news.example.com/{slug}",
        source=source,
        published_at=published_at or BASE_TIME,
        **kwargs,
    )


def make_quote(
    symbol: str,
    change_percent: float,
    price: float = 100.0,
    name: str = "",
    timestamp: datetime | None = None,
    **kwargs: Any,
) -> MarketQuote:
    return MarketQuote(
        symbol=symbol,
        name=name,
        price=price,
        change=price * change_percent / 100,
        change_percent=change_percent,
        timestamp=timestamp or BASE_TIME,
        source="test",
        **kwargs,
    )


def make_history(
    closes: list[float],
    start: datetime | None = None,
    step: timedelta = timedelta(days=1),
    volume: float = 1000.0,
) -> list[PricePoint]:
    """Daily bars whose open/high/low equal the close."""
    start = start or BASE_TIME - step * len(closes)
    return [
        PricePoint(
            timestamp=start + step * i,
            open=close,
            high=close,
            low=close,
            close=close,
            volume=volume,
        )
        for i, close in enumerate(closes)
    ]


def classified(
    news: list[RawNewsItem | NewsItem] | None = None,
    quotes: list[MarketQuote] | None = None,
    history: dict[str, list[PricePoint]] | None = None,
) -> ClassifiedBatch:
    """Classify and freeze inputs the way the engine does."""
    engine = AnalysisEngine(AnalysisConfig(), analyzers=[])
    batch, _ = engine.prepare(
        AnalysisBatch(news=news or [], quotes=quotes or [], history=history or {})
    )
    return batch


@pytest.fixture
def config() -> AnalysisConfig:
    return AnalysisConfig()


@pytest.fixture
def engine(config: AnalysisConfig) -> AnalysisEngine:
    return AnalysisEngine(config)


@pytest.fixture
def store() -> InMemoryMonitorStore:
    return InMemoryMonitorStore()


@pytest.fixture
def registry(store: InMemoryMonitorStore) -> MonitorRegistry:
    return MonitorRegistry(store)


@pytest.fixture
def bitcoin_batch() -> AnalysisBatch:
    """One bullish bitcoin headline and a strong BTC move."""
    return AnalysisBatch(
        news=[make_raw_news("Bitcoin breaks $50,000", "ETF inflows surge", item_id="btc-1")],
        quotes=[make_quote("BTC", 8.2, price=50000.0)],
    )


@pytest.fixture
def mixed_batch() -> AnalysisBatch:
    """A realistic batch touching every analyzer."""
    news = [
        make_raw_news(
            "Russia launches new attack on Ukraine",
            "Kyiv reports war escalation overnight",
            item_id="ua-1",
            source="Reuters",
            published_at=BASE_TIME - timedelta(hours=6),
        ),
        make_raw_news(
            "Ukraine war: Zelensky calls for more air defense",
            "Attack on energy grid leaves millions without power",
            item_id="ua-2",
            source="BBC",
            published_at=BASE_TIME - timedelta(hours=4),
        ),
        make_raw_news(
            "NATO allies discuss Ukraine war support",
            "Putin warns of escalation",
            item_id="ua-3",
            source="AP",
            published_at=BASE_TIME - timedelta(hours=2),
        ),
        make_raw_news(
            "Federal Reserve holds interest rate steady",
            "Powell signals rate cut later this year",
            item_id="fed-1",
            source="CNBC",
            published_at=BASE_TIME - timedelta(hours=3),
        ),
        make_raw_news(
            "Bitcoin ETF inflows surge to record",
            "BlackRock fund leads institutional adoption",
            item_id="btc-1",
            source="CoinDesk",
            published_at=BASE_TIME - timedelta(hours=1),
        ),
    ]
    btc_closes = [40000 + 500 * i + (300 if i % 2 else -200) for i in range(12)]
    eth_closes = [2500 + 30 * i + (25 if i % 2 else -10) for i in range(12)]
    return AnalysisBatch(
        news=news,
        quotes=[
            make_quote("BTC", 6.5, price=50000.0, high_24h=51000.0, low_24h=47000.0),
            make_quote("ETH", -7.5, price=2800.0),
            make_quote("SOL", 0.4, price=100.0, high_24h=103.0, low_24h=99.0),
        ],
        history={
            "BTC": make_history(btc_closes),
            "ETH": make_history(eth_closes),
        },
    )
