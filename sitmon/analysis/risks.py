"""
Risk analyzer - news risks grouped by (type, region) plus sharp market declines.
"""

from collections import defaultdict

from loguru import logger

from sitmon.analysis.base import clamp, items_mentioning, make_id
from sitmon.analysis.config import ASSET_KEYWORDS, RiskConfig
from sitmon.analysis.types import (
    AlertLevel,
    ClassifiedBatch,
    NewsCategory,
    NewsItem,
    Region,
    RiskAssessment,
    RiskLevel,
    RiskType,
    Timeframe,
)

CATEGORY_RISK_TYPES: dict[NewsCategory, RiskType] = {
    NewsCategory.POLITICS: RiskType.GEOPOLITICAL,
    NewsCategory.GOV: RiskType.GEOPOLITICAL,
    NewsCategory.INTEL: RiskType.GEOPOLITICAL,
    NewsCategory.BREAKING: RiskType.GEOPOLITICAL,
    NewsCategory.GENERAL: RiskType.GEOPOLITICAL,
    NewsCategory.REGULATORY: RiskType.REGULATORY,
    NewsCategory.FINANCE: RiskType.MARKET,
    NewsCategory.MARKETS: RiskType.MARKET,
    NewsCategory.CRYPTO: RiskType.MARKET,
    NewsCategory.TECH: RiskType.TECHNICAL,
    NewsCategory.AI: RiskType.TECHNICAL,
}

# Keyword tags that override the category mapping
KEYWORD_RISK_TYPES: dict[str, RiskType] = {
    "hack": RiskType.TECHNICAL,
    "breach": RiskType.TECHNICAL,
    "outage": RiskType.TECHNICAL,
    "blackout": RiskType.TECHNICAL,
    "default": RiskType.SYSTEMIC,
    "bankruptcy": RiskType.SYSTEMIC,
    "collapse": RiskType.SYSTEMIC,
    "crash": RiskType.LIQUIDITY,
    "sanction": RiskType.REGULATORY,
    "embargo": RiskType.REGULATORY,
    "lawsuit": RiskType.REGULATORY,
    "investigation": RiskType.REGULATORY,
}

IMPACT_BASE: dict[AlertLevel, float] = {
    AlertLevel.CRITICAL: 90,
    AlertLevel.HIGH: 70,
    AlertLevel.MEDIUM: 45,
}

MITIGATION: dict[RiskType, tuple[str, ...]] = {
    RiskType.MARKET: ("Reduce position sizes", "Set protective stop losses"),
    RiskType.GEOPOLITICAL: ("Diversify regional exposure", "Hedge with safe-haven assets"),
    RiskType.REGULATORY: ("Review compliance exposure", "Avoid directly affected venues"),
    RiskType.TECHNICAL: ("Move funds off affected platforms", "Verify custody arrangements"),
    RiskType.LIQUIDITY: ("Keep cash reserves", "Avoid thin order books"),
    RiskType.SYSTEMIC: ("Lower overall leverage", "Increase hedges across asset classes"),
}

MONITORING: dict[RiskType, tuple[str, ...]] = {
    RiskType.MARKET: ("Price action", "Trading volume"),
    RiskType.GEOPOLITICAL: ("Official statements", "Follow-up coverage"),
    RiskType.REGULATORY: ("Regulator announcements", "Court filings"),
    RiskType.TECHNICAL: ("Incident reports", "Platform status pages"),
    RiskType.LIQUIDITY: ("Bid-ask spreads", "Exchange flows"),
    RiskType.SYSTEMIC: ("Credit spreads", "Cross-asset correlation"),
}

_TIMEFRAMES = {
    AlertLevel.CRITICAL: Timeframe.IMMEDIATE,
    AlertLevel.HIGH: Timeframe.SHORT_TERM,
    AlertLevel.MEDIUM: Timeframe.MEDIUM_TERM,
}


def risk_type_for(item: NewsItem) -> RiskType:
    for keyword in item.keywords:
        if keyword in KEYWORD_RISK_TYPES:
            return KEYWORD_RISK_TYPES[keyword]
    return CATEGORY_RISK_TYPES.get(item.category, RiskType.GEOPOLITICAL)


class RiskAnalyzer:
    name = "risks"

    def __init__(self, config: RiskConfig | None = None):
        self.config = config or RiskConfig()

    def level_for(self, probability: float, impact: float) -> RiskLevel:
        score = probability * impact / 100
        if score >= self.config.critical_score:
            return RiskLevel.CRITICAL
        if score >= self.config.high_score:
            return RiskLevel.HIGH
        if score >= self.config.medium_score:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def analyze(self, batch: ClassifiedBatch) -> list[RiskAssessment]:
        risks = self._news_risks(batch) + self._market_risks(batch)
        cfg = self.config
        risks = [
            r
            for r in risks
            if r.confidence >= cfg.min_confidence
            and r.probability >= cfg.min_probability
            and r.potential_impact >= cfg.min_impact
        ]
        risks.sort(key=lambda r: (-r.level.rank, -r.score, r.id))
        if risks:
            logger.debug(f"Risks: {len(risks)} identified")
        return risks

    def _news_risks(self, batch: ClassifiedBatch) -> list[RiskAssessment]:
        groups: dict[tuple[RiskType, Region | None], list[NewsItem]] = defaultdict(list)
        for item in batch.news:
            if item.alert_level.rank >= AlertLevel.MEDIUM.rank:
                groups[(risk_type_for(item), item.region)].append(item)

        results = []
        for (risk_type, region), items in groups.items():
            items.sort(key=lambda i: (i.published_at, i.id))
            level = max((i.alert_level for i in items), key=lambda lv: lv.rank)
            sources = {i.source for i in items}

            probability = clamp(
                30
                + len(items) * 10
                + len(sources) * 5
                + (10 if level == AlertLevel.CRITICAL else 0)
            )
            impact = clamp(IMPACT_BASE[level] + 2 * (len(items) - 1))
            assets = sorted(
                s for s in ASSET_KEYWORDS if any(s.lower() in i.keywords for i in items)
            )
            where = region.value if region else "unspecified region"

            results.append(
                RiskAssessment(
                    id=make_id("risk", risk_type.value, region.value if region else "none"),
                    type=risk_type,
                    level=self.level_for(probability, impact),
                    description=(
                        f"{risk_type.value.title()} risk in {where}: "
                        f"{len(items)} {level.value}-severity item(s), e.g. \"{items[-1].title}\""
                    ),
                    affected_assets=tuple(assets),
                    affected_regions=(region,) if region else (),
                    probability=probability,
                    potential_impact=impact,
                    confidence=min(95, 35 + len(items) * 8 + len(sources) * 5),
                    timeframe=_TIMEFRAMES[level],
                    mitigation_strategies=MITIGATION[risk_type],
                    monitoring_indicators=MONITORING[risk_type],
                    evidence=tuple(i.id for i in items),
                    detected_at=batch.as_of,
                )
            )
        return results

    def _market_risks(self, batch: ClassifiedBatch) -> list[RiskAssessment]:
        results = []
        for quote in batch.quotes:
            if quote.change_percent > -self.config.decline_percent:
                continue
            decline = abs(quote.change_percent)
            mentions = items_mentioning(batch, quote)
            probability = clamp(40 + decline * 3)
            impact = clamp(decline * 6 + 20)
            results.append(
                RiskAssessment(
                    id=make_id("risk", "decline", quote.symbol),
                    type=RiskType.MARKET,
                    level=self.level_for(probability, impact),
                    description=f"{quote.symbol} fell {decline:.1f}% in 24h",
                    affected_assets=(quote.symbol,),
                    probability=probability,
                    potential_impact=impact,
                    confidence=min(95, 50 + decline * 2),
                    timeframe=Timeframe.IMMEDIATE,
                    mitigation_strategies=MITIGATION[RiskType.MARKET],
                    monitoring_indicators=MONITORING[RiskType.MARKET],
                    evidence=(quote.symbol, *(i.id for i in mentions)),
                    detected_at=batch.as_of,
                )
            )
        return results
