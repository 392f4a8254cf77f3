"""
News classifier - assigns alert level, category, region, keywords and sentiment.

Every classified item is a new frozen ``NewsItem``; the raw input and the
keyword tables are never modified.
"""

import hashlib
import re

from loguru import logger
from pydantic import ValidationError

from sitmon.analysis.config import (
    ASSET_KEYWORDS,
    MARKET_KEYWORDS,
    ClassifierConfig,
    compile_terms,
    matching_terms,
)
from sitmon.analysis.sentiment import score_sentiment
from sitmon.analysis.types import (
    AlertLevel,
    NewsCategory,
    NewsItem,
    RawNewsItem,
    Region,
)
from sitmon.errors import ClassificationError

REQUIRED_FIELDS = ("title", "description", "url", "source", "published_at")

# Must be present but may be empty
MAY_BE_EMPTY = frozenset({"description"})

# Tiers in short-circuit order
TIER_ORDER = (AlertLevel.CRITICAL, AlertLevel.HIGH, AlertLevel.MEDIUM, AlertLevel.LOW)


def _matches(pattern: re.Pattern | None, text: str) -> list[str]:
    if pattern is None:
        return []
    return [m.group(0).lower() for m in pattern.finditer(text)]


def _is_missing(field: str, value: object) -> bool:
    if field in MAY_BE_EMPTY:
        return value is None
    return not value


class Classifier:
    """Keyword classifier driven by the ``ClassifierConfig`` tables."""

    def __init__(self, config: ClassifierConfig | None = None):
        self.config = config or ClassifierConfig()
        self._tiers = [
            (level, compile_terms(self.config.alert_keywords.get(level, [])))
            for level in TIER_ORDER
        ]
        self._categories = [
            (category, compile_terms(terms))
            for category, terms in self.config.category_keywords.items()
        ]
        self._regions = [
            (region, compile_terms(terms))
            for region, terms in self.config.region_keywords.items()
        ]
        self._assets = [
            (symbol, compile_terms(aliases)) for symbol, aliases in ASSET_KEYWORDS.items()
        ]
        self._themes = [
            (theme, compile_terms(terms)) for theme, terms in MARKET_KEYWORDS.items()
        ]

    def alert_level(self, text: str) -> tuple[AlertLevel, list[str]]:
        """First tier with a hit wins; returns the level and the matched terms."""
        for level, pattern in self._tiers:
            if _matches(pattern, text):
                return level, matching_terms(text, self.config.alert_keywords[level])
        return AlertLevel.NONE, []

    def categories(self, text: str) -> list[NewsCategory]:
        return [c for c, pattern in self._categories if _matches(pattern, text)]

    def region(self, text: str) -> Region | None:
        for region, pattern in self._regions:
            if _matches(pattern, text):
                return region
        return None

    def classify(self, raw: RawNewsItem | NewsItem) -> NewsItem:
        """
        Classify one item.

        Already classified items pass through unchanged.

        Raises:
            ClassificationError: A required field is missing or a value is invalid
        """
        if isinstance(raw, NewsItem):
            return raw

        missing = [f for f in REQUIRED_FIELDS if _is_missing(f, getattr(raw, f))]
        if missing:
            raise ClassificationError(
                f"Missing required field(s): {', '.join(missing)}", item_id=raw.id
            )

        text = f"{raw.title} {raw.description}"
        level, alert_hits = self.alert_level(text)
        matched_categories = self.categories(text)

        if raw.category is not None:
            category = raw.category
        elif matched_categories:
            category = matched_categories[0]
        else:
            category = NewsCategory.GENERAL

        region = raw.region or self.region(text)

        tags: list[str] = [k.lower() for k in raw.keywords]
        tags.append(category.value)
        if region is not None:
            tags.append(region.value)
        tags.extend(c.value for c in matched_categories)
        tags.extend(s.lower() for s, pattern in self._assets if _matches(pattern, text))
        tags.extend(t for t, pattern in self._themes if _matches(pattern, text))
        tags.extend(alert_hits)

        sentiment = raw.sentiment
        if sentiment is None:
            sentiment = score_sentiment(text)

        try:
            return NewsItem(
                id=raw.id or self._item_id(raw),
                title=raw.title,
                description=raw.description,
                url=raw.url,
                source=raw.source,
                category=category,
                published_at=raw.published_at,
                region=region,
                keywords=tuple(dict.fromkeys(tags)),
                alert_level=level,
                sentiment=sentiment,
            )
        except ValidationError as e:
            raise ClassificationError(str(e), item_id=raw.id) from e

    def classify_batch(
        self, items: list[RawNewsItem | NewsItem]
    ) -> tuple[list[NewsItem], int]:
        """
        Classify a batch, excluding malformed items.

        Returns:
            The classified items in input order and the number rejected
        """
        classified: list[NewsItem] = []
        seen: set[str] = set()
        rejected = 0

        for raw in items:
            try:
                item = self.classify(raw)
            except ClassificationError as e:
                rejected += 1
                logger.warning(f"Rejected news item {e.item_id or '<no id>'}: {e.message}")
                continue

            if item.id in seen:
                logger.debug(f"Skipping duplicate news item {item.id}")
                continue
            seen.add(item.id)
            classified.append(item)

        if rejected:
            logger.warning(f"Classifier rejected {rejected}/{len(items)} items")
        return classified, rejected

    @staticmethod
    def _item_id(raw: RawNewsItem) -> str:
        key = raw.url or raw.title
        return hashlib.md5(key.encode()).hexdigest()[:12]
