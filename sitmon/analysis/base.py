"""
Shared analyzer plumbing: the capability protocol and small helpers.
"""

import hashlib
from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from sitmon.analysis.config import mentions_asset
from sitmon.analysis.types import (
    AlertLevel,
    ClassifiedBatch,
    HeadlineRef,
    MarketQuote,
    NewsItem,
)

# Alert levels treated as crisis news
CRISIS_LEVELS = (AlertLevel.CRITICAL, AlertLevel.HIGH)


@runtime_checkable
class Analyzer(Protocol):
    """Batch in, findings out. Implementations must not mutate the batch."""

    name: str

    def analyze(self, batch: ClassifiedBatch) -> Sequence[BaseModel]: ...


def make_id(prefix: str, *parts: object) -> str:
    """Stable identifier derived from the finding's content."""
    raw = "|".join(str(p) for p in parts)
    return f"{prefix}-{hashlib.md5(raw.encode()).hexdigest()[:12]}"


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def headline_refs(items: Iterable[NewsItem], limit: int = 5) -> tuple[HeadlineRef, ...]:
    return tuple(
        HeadlineRef(title=item.title, link=item.url, source=item.source)
        for item in list(items)[:limit]
    )


def items_mentioning(batch: ClassifiedBatch, quote: MarketQuote) -> list[NewsItem]:
    """News items that mention the quote's symbol or name."""
    return [
        item
        for item in batch.news
        if mentions_asset(item.text, quote.symbol, quote.name)
        or quote.symbol.lower() in item.keywords
    ]


def is_crisis(item: NewsItem) -> bool:
    return item.alert_level in CRISIS_LEVELS


def mean_sentiment(items: Iterable[NewsItem]) -> float | None:
    scores = [item.sentiment for item in items if item.sentiment is not None]
    if not scores:
        return None
    return sum(scores) / len(scores)
