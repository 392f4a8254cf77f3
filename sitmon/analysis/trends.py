"""
Trend analyzer - directional signals per asset and per region.
"""

from collections import defaultdict
from collections.abc import Sequence

import pandas as pd

from sitmon.analysis.base import clamp, is_crisis, items_mentioning, make_id, mean_sentiment
from sitmon.analysis.config import TrendConfig
from sitmon.analysis.types import (
    ClassifiedBatch,
    MarketQuote,
    NewsItem,
    PricePoint,
    Region,
    Timeframe,
    TrendAnalysis,
    TrendDirection,
    TrendIndicators,
)

MACD_FAST = 12
MACD_SLOW = 26
MA_WINDOW = 20


def rsi(closes: Sequence[float], period: int = 14) -> float | None:
    """Relative strength index with Wilder's smoothing; None below ``period + 1`` bars."""
    if len(closes) <= period:
        return None

    change = pd.Series(closes, dtype=float).diff().fillna(0.0)
    avg_gain = change.clip(lower=0).ewm(alpha=1 / period, adjust=False).mean().iloc[-1]
    avg_loss = (-change.clip(upper=0)).ewm(alpha=1 / period, adjust=False).mean().iloc[-1]

    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return round(float(100 - 100 / (1 + rs)), 2)


def macd(closes: Sequence[float]) -> float | None:
    if len(closes) < MACD_SLOW:
        return None
    close = pd.Series(closes, dtype=float)
    ema_fast = close.ewm(span=MACD_FAST, adjust=False).mean()
    ema_slow = close.ewm(span=MACD_SLOW, adjust=False).mean()
    return round(float(ema_fast.iloc[-1] - ema_slow.iloc[-1]), 6)


def indicators_from_history(
    history: tuple[PricePoint, ...], quote: MarketQuote, rsi_period: int
) -> TrendIndicators:
    """Indicators that the batch's history supports; the rest stay None."""
    if not history:
        return TrendIndicators()

    df = pd.DataFrame(
        [{"timestamp": p.timestamp, "close": p.close, "volume": p.volume} for p in history]
    ).sort_values("timestamp")
    closes = df["close"].tolist()
    moving_average = df["close"].rolling(MA_WINDOW, min_periods=1).mean().iloc[-1]

    volume_ratio = None
    volumes = df.loc[df["volume"] > 0, "volume"]
    if not volumes.empty and quote.volume > 0:
        volume_ratio = round(float(quote.volume / volumes.mean()), 4)

    return TrendIndicators(
        moving_average=round(float(moving_average), 6),
        rsi=rsi(closes, rsi_period),
        macd=macd(closes),
        volume_ratio=volume_ratio,
    )


class TrendAnalyzer:
    name = "trends"

    def __init__(self, config: TrendConfig | None = None):
        self.config = config or TrendConfig()

    def analyze(self, batch: ClassifiedBatch) -> list[TrendAnalysis]:
        trends = [self._asset_trend(batch, q) for q in batch.quotes]
        trends.extend(self._region_trends(batch))
        trends = [t for t in trends if t.confidence >= self.config.min_confidence]
        trends.sort(key=lambda t: (-t.confidence, t.id))
        return trends

    def _direction(self, quote: MarketQuote) -> TrendDirection:
        cfg = self.config
        cp = quote.change_percent
        if cp >= cfg.breakout_percent:
            return TrendDirection.BREAKING_OUT
        if cp <= -cfg.breakout_percent:
            return TrendDirection.BREAKING_DOWN
        range_pct = quote.range_percent
        if range_pct is not None and range_pct >= cfg.volatile_range_percent:
            return TrendDirection.VOLATILE
        if cp >= cfg.trend_percent:
            return TrendDirection.BULLISH
        if cp <= -cfg.trend_percent:
            return TrendDirection.BEARISH
        return TrendDirection.SIDEWAYS

    def _asset_trend(self, batch: ClassifiedBatch, quote: MarketQuote) -> TrendAnalysis:
        history = batch.history.get(quote.symbol, ())
        mentions = items_mentioning(batch, quote)
        direction = self._direction(quote)
        indicators = indicators_from_history(history, quote, self.config.rsi_period)
        sentiment = mean_sentiment(mentions)
        if sentiment is not None:
            indicators = indicators.model_copy(update={"sentiment": round(sentiment, 4)})

        supports = {quote.low_24h} if quote.low_24h is not None else set()
        resistances = {quote.high_24h} if quote.high_24h is not None else set()
        if history:
            supports.add(min(p.low for p in history))
            resistances.add(max(p.high for p in history))
            span = max(p.timestamp for p in history) - min(p.timestamp for p in history)
            duration_days = round(span.total_seconds() / 86400, 2)
        else:
            duration_days = 1.0

        cp = abs(quote.change_percent)
        if direction == TrendDirection.SIDEWAYS:
            strength = clamp(20 + cp * 10)
        else:
            strength = clamp(cp * 10 + len(mentions) * 5)

        confidence = min(95, 40 + cp * 4 + 5 * len(mentions) + (10 if history else 0))

        breaking = direction in (TrendDirection.BREAKING_OUT, TrendDirection.BREAKING_DOWN)
        return TrendAnalysis(
            id=make_id("trend", quote.symbol),
            symbol=quote.symbol,
            asset_class=quote.asset_type or None,
            direction=direction,
            strength=strength,
            confidence=confidence,
            timeframe=Timeframe.IMMEDIATE if breaking else Timeframe.SHORT_TERM,
            duration_days=duration_days,
            indicators=indicators,
            support_levels=tuple(sorted(supports)),
            resistance_levels=tuple(sorted(resistances)),
            breakout_level=max(resistances) if resistances else None,
            breakdown_level=min(supports) if supports else None,
            evidence=(quote.symbol, *(i.id for i in mentions)),
            detected_at=batch.as_of,
        )

    def _region_trends(self, batch: ClassifiedBatch) -> list[TrendAnalysis]:
        by_region: dict[Region, list[NewsItem]] = defaultdict(list)
        for item in batch.news:
            if item.region is not None:
                by_region[item.region].append(item)

        results = []
        for region, items in by_region.items():
            if len(items) < self.config.min_region_items:
                continue

            items = sorted(items, key=lambda i: (i.published_at, i.id))
            sentiment = mean_sentiment(items) or 0.0
            crisis_share = sum(1 for i in items if is_crisis(i)) / len(items)
            scores = [i.sentiment for i in items if i.sentiment is not None]

            if crisis_share >= 0.5 or sentiment <= -0.2:
                direction = TrendDirection.BEARISH
            elif sentiment >= 0.2:
                direction = TrendDirection.BULLISH
            elif scores and max(scores) >= 0.5 and min(scores) <= -0.5:
                direction = TrendDirection.VOLATILE
            else:
                direction = TrendDirection.SIDEWAYS

            sources = {i.source for i in items}
            max_rank = max(i.alert_level.rank for i in items)
            span = items[-1].published_at - items[0].published_at

            results.append(
                TrendAnalysis(
                    id=make_id("trend", region.value),
                    region=region,
                    direction=direction,
                    strength=clamp(abs(sentiment) * 60 + crisis_share * 40),
                    confidence=min(95, 30 + len(items) * 5 + len(sources) * 5 + max_rank * 5),
                    timeframe=Timeframe.SHORT_TERM,
                    duration_days=round(span.total_seconds() / 86400, 2),
                    indicators=TrendIndicators(sentiment=round(sentiment, 4)),
                    evidence=tuple(i.id for i in items),
                    detected_at=batch.as_of,
                )
            )
        return results
