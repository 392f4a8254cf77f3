"""
Pattern analyzer - recurring topics across news items and market-wide moves.

Detects:
- Topic patterns (a topic mentioned by several items, scored by mentions,
  source spread and alert severity)
- Price action (large single-asset moves)
- Market correction (most quotes falling together)
- Sentiment shift (batch sentiment strongly one-sided)
- Volume spike (volume well above its history average)
"""

from collections import defaultdict

from loguru import logger

from sitmon.analysis.base import clamp, headline_refs, items_mentioning, make_id
from sitmon.analysis.config import PATTERN_TOPICS, PatternConfig, PatternTopic
from sitmon.analysis.types import (
    AlertLevel,
    AnalysisPattern,
    ClassifiedBatch,
    ImpactVector,
    NewsItem,
    PatternType,
    Timeframe,
)


def _timeframe_for(level: AlertLevel) -> Timeframe:
    if level.rank >= AlertLevel.HIGH.rank:
        return Timeframe.IMMEDIATE
    if level == AlertLevel.MEDIUM:
        return Timeframe.SHORT_TERM
    return Timeframe.MEDIUM_TERM


class PatternAnalyzer:
    name = "patterns"

    def __init__(
        self,
        config: PatternConfig | None = None,
        topics: list[PatternTopic] | None = None,
    ):
        self.config = config or PatternConfig()
        self.topics = topics if topics is not None else PATTERN_TOPICS

    @staticmethod
    def _format_topic_name(topic_id: str) -> str:
        return topic_id.replace("-", " ").title()

    def analyze(self, batch: ClassifiedBatch) -> list[AnalysisPattern]:
        patterns = self._topic_patterns(batch) + self._market_patterns(batch)
        patterns = [p for p in patterns if p.confidence >= self.config.min_confidence]
        patterns.sort(key=lambda p: (-p.confidence, p.id))
        return patterns

    # ── News topics ──────────────────────────────────────────────────────────

    def _topic_patterns(self, batch: ClassifiedBatch) -> list[AnalysisPattern]:
        topic_items: dict[str, list[NewsItem]] = defaultdict(list)

        for item in batch.news:
            text = item.text
            for topic in self.topics:
                if any(p.search(text) for p in topic.patterns):
                    topic_items[topic.id].append(item)

        results = []
        for topic in self.topics:
            items = sorted(topic_items.get(topic.id, []), key=lambda i: (i.published_at, i.id))
            if len(items) < self.config.min_mentions:
                continue

            sources = sorted({i.source for i in items})
            level = max((i.alert_level for i in items), key=lambda lv: lv.rank)

            score = len(items) * 2 + len(sources) * 3 + level.rank * 5
            confidence = min(95, round(score * 1.5))
            probability = min(95, 30 + len(items) * 10 + level.rank * 5)

            scores = [i.sentiment for i in items if i.sentiment is not None]
            negative = bool(scores) and sum(scores) / len(scores) < 0
            scale = 1 + 0.1 * level.rank
            impact = {
                axis: clamp(value * scale) * (-1 if negative and axis == "market" else 1)
                for axis, value in topic.impact.items()
            }

            results.append(
                AnalysisPattern(
                    id=make_id("pattern", topic.id),
                    type=topic.pattern_type,
                    name=self._format_topic_name(topic.id),
                    description=(
                        f"{len(items)} items across {len(sources)} source(s) "
                        f"mention {self._format_topic_name(topic.id)}"
                    ),
                    confidence=confidence,
                    probability=probability,
                    timeframe=_timeframe_for(level),
                    impact=ImpactVector(**impact),
                    evidence=tuple(i.id for i in items),
                    sources=tuple(sources),
                    headlines=headline_refs(items),
                    first_detected=items[0].published_at,
                    last_updated=items[-1].published_at,
                    detected_at=batch.as_of,
                )
            )

        return results

    # ── Market ───────────────────────────────────────────────────────────────

    def _market_patterns(self, batch: ClassifiedBatch) -> list[AnalysisPattern]:
        results: list[AnalysisPattern] = []
        cfg = self.config

        for quote in batch.quotes:
            if abs(quote.change_percent) < cfg.price_action_percent:
                continue
            mentions = items_mentioning(batch, quote)
            direction = "up" if quote.change_percent > 0 else "down"
            sign = 1 if quote.change_percent > 0 else -1
            results.append(
                AnalysisPattern(
                    id=make_id("pattern", "price_action", quote.symbol),
                    type=PatternType.PRICE_ACTION,
                    name=f"{quote.symbol} Price Action",
                    description=(
                        f"{quote.symbol} moved {direction} "
                        f"{abs(quote.change_percent):.1f}% with {len(mentions)} related item(s)"
                    ),
                    confidence=min(95, 40 + abs(quote.change_percent) * 3 + 5 * len(mentions)),
                    probability=min(95, 50 + abs(quote.change_percent) * 2),
                    timeframe=Timeframe.IMMEDIATE,
                    impact=ImpactVector(market=sign * clamp(abs(quote.change_percent) * 5)),
                    evidence=(quote.symbol, *(i.id for i in mentions)),
                    sources=tuple(sorted({quote.source} - {""})),
                    headlines=headline_refs(mentions),
                    first_detected=quote.timestamp,
                    last_updated=quote.timestamp,
                    detected_at=batch.as_of,
                )
            )

        if len(batch.quotes) >= 2:
            falling = [q for q in batch.quotes if q.change_percent <= -cfg.correction_percent]
            share = len(falling) / len(batch.quotes)
            if share >= cfg.correction_share:
                avg_decline = sum(q.change_percent for q in falling) / len(falling)
                results.append(
                    AnalysisPattern(
                        id=make_id("pattern", "market_correction"),
                        type=PatternType.MARKET_CORRECTION,
                        name="Market Correction",
                        description=(
                            f"{len(falling)}/{len(batch.quotes)} assets down, "
                            f"average {avg_decline:.1f}%"
                        ),
                        confidence=min(95, 30 + share * 50 + abs(avg_decline) * 2),
                        probability=min(95, share * 100),
                        timeframe=Timeframe.SHORT_TERM,
                        impact=ImpactVector(
                            market=-clamp(abs(avg_decline) * 8),
                            economic=-clamp(abs(avg_decline) * 4),
                        ),
                        evidence=tuple(sorted(q.symbol for q in falling)),
                        first_detected=min(q.timestamp for q in falling),
                        last_updated=max(q.timestamp for q in falling),
                        detected_at=batch.as_of,
                    )
                )

        results.extend(self._sentiment_shift(batch))
        results.extend(self._volume_spikes(batch))
        return results

    def _sentiment_shift(self, batch: ClassifiedBatch) -> list[AnalysisPattern]:
        scored = [i for i in batch.news if i.sentiment is not None and i.sentiment != 0]
        if len(scored) < self.config.min_mentions:
            return []

        mean = sum(i.sentiment for i in scored) / len(scored)
        if abs(mean) < self.config.sentiment_threshold:
            return []

        # One-sided: the items must agree with the mean's sign
        aligned = [i for i in scored if (i.sentiment > 0) == (mean > 0)]
        if len(aligned) / len(scored) < 0.7:
            return []

        aligned.sort(key=lambda i: (i.published_at, i.id))
        tone = "positive" if mean > 0 else "negative"
        return [
            AnalysisPattern(
                id=make_id("pattern", "sentiment_shift", tone),
                type=PatternType.SENTIMENT_SHIFT,
                name=f"{tone.title()} Sentiment Shift",
                description=f"{len(aligned)}/{len(scored)} scored items are {tone} (mean {mean:+.2f})",
                confidence=min(95, 30 + abs(mean) * 50 + len(aligned) * 2),
                probability=min(95, len(aligned) / len(scored) * 100),
                timeframe=Timeframe.SHORT_TERM,
                impact=ImpactVector(market=round(mean * 50, 2), social=round(mean * 30, 2)),
                evidence=tuple(i.id for i in aligned),
                sources=tuple(sorted({i.source for i in aligned})),
                headlines=headline_refs(aligned),
                first_detected=aligned[0].published_at,
                last_updated=aligned[-1].published_at,
                detected_at=batch.as_of,
            )
        ]

    def _volume_spikes(self, batch: ClassifiedBatch) -> list[AnalysisPattern]:
        results = []
        for quote in batch.quotes:
            history = batch.history.get(quote.symbol, ())
            volumes = [p.volume for p in history if p.volume > 0]
            if not volumes or quote.volume <= 0:
                continue
            ratio = quote.volume / (sum(volumes) / len(volumes))
            if ratio < self.config.volume_spike_ratio:
                continue
            results.append(
                AnalysisPattern(
                    id=make_id("pattern", "volume_spike", quote.symbol),
                    type=PatternType.VOLUME_SPIKE,
                    name=f"{quote.symbol} Volume Spike",
                    description=f"{quote.symbol} volume {ratio:.1f}x its recent average",
                    confidence=min(95, 30 + (ratio - 1) * 15),
                    probability=min(95, 40 + ratio * 10),
                    timeframe=Timeframe.IMMEDIATE,
                    impact=ImpactVector(market=clamp(ratio * 10)),
                    evidence=(quote.symbol,),
                    first_detected=quote.timestamp,
                    last_updated=quote.timestamp,
                    detected_at=batch.as_of,
                )
            )
        if results:
            logger.debug(f"Volume spikes: {', '.join(p.name for p in results)}")
        return results
