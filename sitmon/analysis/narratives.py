"""
Narrative analyzer - groups items into evolving storylines.

Items are visited in publication order and greedily joined to the open
storyline whose keyword set overlaps theirs the most, as long as the item
falls within ``window_hours`` of the storyline's first item. Strength
combines item count with a recency weight that halves every
``half_life_hours`` before the newest item of the batch.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Literal

from sitmon.analysis.base import clamp, make_id
from sitmon.analysis.config import ASSET_KEYWORDS, NarrativeConfig
from sitmon.analysis.types import (
    AlertLevel,
    ClassifiedBatch,
    Narrative,
    NarrativeOutcome,
    NewsCategory,
    NewsItem,
    Region,
    TimelineEntry,
    Timeframe,
)

# Tags too broad to tie two stories together
GENERIC_TAGS = frozenset(c.value for c in NewsCategory) | frozenset(r.value for r in Region)


def topical_keywords(item: NewsItem) -> set[str]:
    return {k for k in item.keywords if k not in GENERIC_TAGS}


def overlap(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


@dataclass
class _Cluster:
    items: list[NewsItem] = field(default_factory=list)
    keywords: set[str] = field(default_factory=set)

    def add(self, item: NewsItem, keywords: set[str]) -> None:
        self.items.append(item)
        self.keywords |= keywords


def narrative_sentiment(
    items: list[NewsItem],
) -> Literal["positive", "negative", "neutral", "mixed"]:
    scores = [i.sentiment for i in items if i.sentiment is not None]
    if not scores:
        return "neutral"
    positive = sum(1 for s in scores if s > 0.2)
    negative = sum(1 for s in scores if s < -0.2)
    if positive and negative and min(positive, negative) / len(scores) >= 0.3:
        return "mixed"
    mean = sum(scores) / len(scores)
    if mean > 0.1:
        return "positive"
    if mean < -0.1:
        return "negative"
    return "neutral"


class NarrativeAnalyzer:
    name = "narratives"

    def __init__(self, config: NarrativeConfig | None = None):
        self.config = config or NarrativeConfig()

    def cluster(self, items: list[NewsItem]) -> list[list[NewsItem]]:
        """Chronological greedy clustering; returns member lists in creation order."""
        window = timedelta(hours=self.config.window_hours)
        clusters: list[_Cluster] = []

        for item in sorted(items, key=lambda i: (i.published_at, i.id)):
            keywords = topical_keywords(item)
            if not keywords:
                continue

            best, best_score = None, 0.0
            for cluster in clusters:
                if item.published_at - cluster.items[0].published_at > window:
                    continue
                score = overlap(keywords, cluster.keywords)
                if score >= self.config.similarity_threshold and score > best_score:
                    best, best_score = cluster, score

            if best is None:
                best = _Cluster()
                clusters.append(best)
            best.add(item, keywords)

        return [c.items for c in clusters]

    def analyze(self, batch: ClassifiedBatch) -> list[Narrative]:
        cfg = self.config
        narratives = [
            self._build(batch, members)
            for members in self.cluster(list(batch.news))
            if len(members) >= cfg.min_items
        ]
        narratives = [n for n in narratives if n.strength >= cfg.min_strength]
        narratives.sort(key=lambda n: (-n.strength, n.id))
        return narratives[: cfg.max_narratives]

    def _recency_weight(self, item: NewsItem, batch: ClassifiedBatch) -> float:
        age_hours = max(0.0, (batch.as_of - item.published_at).total_seconds() / 3600)
        return 0.5 ** (age_hours / self.config.half_life_hours)

    def _build(self, batch: ClassifiedBatch, items: list[NewsItem]) -> Narrative:
        counts = Counter(k for i in items for k in topical_keywords(i))
        top = [k for k, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:5]]
        sources = sorted({i.source for i in items})
        recency = sum(self._recency_weight(i, batch) for i in items)
        strength = clamp(len(items) * 10 + recency * 15 + len(sources) * 5)

        crisis_share = sum(
            1 for i in items if i.alert_level.rank >= AlertLevel.HIGH.rank
        ) / len(items)
        positive_share = sum(1 for i in items if (i.sentiment or 0) > 0.2) / len(items)
        sentiment = narrative_sentiment(items)

        escalation = round(clamp(20 + crisis_share * 50), 1)
        resolution = round(clamp(20 + positive_share * 40), 1)
        continuation = round(max(0.0, 100 - escalation - resolution), 1)
        drift = strength * 0.3 * (-1 if sentiment == "negative" else 1)

        span = items[-1].published_at - items[0].published_at
        if span > timedelta(hours=48):
            timeframe = Timeframe.MEDIUM_TERM
        elif crisis_share >= 0.5:
            timeframe = Timeframe.IMMEDIATE
        else:
            timeframe = Timeframe.SHORT_TERM

        title = " / ".join(k.title() for k in top[:3])
        all_keywords = {k for i in items for k in i.keywords}
        return Narrative(
            id=make_id("narrative", items[0].id),
            title=title,
            description=f"{len(items)} related items from {len(sources)} source(s): {items[-1].title}",
            keywords=tuple(top),
            sentiment=sentiment,
            strength=strength,
            confidence=min(95, 30 + len(items) * 10 + len(sources) * 5),
            timeframe=timeframe,
            sources=tuple(sources),
            related_assets=tuple(s for s in ASSET_KEYWORDS if s.lower() in all_keywords),
            related_regions=tuple(
                sorted({i.region for i in items if i.region is not None}, key=lambda r: r.value)
            ),
            timeline=tuple(
                TimelineEntry(
                    date=i.published_at,
                    event=i.title,
                    impact=i.alert_level.rank * 25,
                    item_id=i.id,
                )
                for i in items
            ),
            potential_outcomes=(
                NarrativeOutcome(scenario="escalation", probability=escalation, impact=-round(strength, 1)),
                NarrativeOutcome(scenario="continuation", probability=continuation, impact=round(drift, 1)),
                NarrativeOutcome(scenario="resolution", probability=resolution, impact=round(strength * 0.5, 1)),
            ),
            evidence=tuple(i.id for i in items),
            first_detected=items[0].published_at,
            last_updated=items[-1].published_at,
            detected_at=batch.as_of,
        )
