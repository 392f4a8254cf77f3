"""
Opportunity analyzer - momentum, mean reversion and grid trading setups.
"""

from sitmon.analysis.base import clamp, is_crisis, items_mentioning, make_id
from sitmon.analysis.config import OpportunityConfig
from sitmon.analysis.trends import rsi
from sitmon.analysis.types import (
    ClassifiedBatch,
    GridParameters,
    MarketQuote,
    NewsItem,
    Opportunity,
    OpportunityType,
    RiskLevel,
    Timeframe,
)


def _regions(items: list[NewsItem]) -> tuple:
    return tuple(sorted({i.region for i in items if i.region is not None}, key=lambda r: r.value))


def _reward_ratio(potential_return: float, stop: float) -> float:
    """Return-to-stop ratio; 0 when there is no stop distance."""
    if stop <= 0:
        return 0.0
    return round(potential_return / stop, 2)


class OpportunityAnalyzer:
    name = "opportunities"

    def __init__(self, config: OpportunityConfig | None = None):
        self.config = config or OpportunityConfig()

    def analyze(self, batch: ClassifiedBatch) -> list[Opportunity]:
        results: list[Opportunity] = []
        for quote in batch.quotes:
            mentions = items_mentioning(batch, quote)
            for build in (self._momentum, self._mean_reversion, self._grid):
                opportunity = build(batch, quote, mentions)
                if opportunity is not None:
                    results.append(opportunity)

        results = [o for o in results if o.confidence >= self.config.min_confidence]
        results.sort(key=lambda o: (-o.confidence, o.id))
        return results

    def _momentum(
        self, batch: ClassifiedBatch, quote: MarketQuote, mentions: list[NewsItem]
    ) -> Opportunity | None:
        cp = quote.change_percent
        if cp < self.config.momentum_percent:
            return None

        crisis = sum(1 for i in mentions if is_crisis(i))
        supporting = len(mentions) - crisis
        confidence = clamp(40 + cp * 4 + 5 * supporting - 15 * crisis, high=95)

        potential_return = round(cp * 0.6, 2)
        stop = round(cp * 0.4, 2)
        return Opportunity(
            id=make_id("opportunity", "momentum", quote.symbol),
            type=OpportunityType.MOMENTUM,
            description=(
                f"{quote.symbol} up {cp:.1f}% with {supporting} supporting item(s)"
            ),
            assets=(quote.symbol,),
            regions=_regions(mentions),
            confidence=confidence,
            timeframe=Timeframe.SHORT_TERM,
            potential_return=potential_return,
            risk_level=RiskLevel.HIGH if cp >= 10 or crisis else RiskLevel.MEDIUM,
            risk_reward_ratio=_reward_ratio(potential_return, stop),
            entry_strategy=f"Enter on pullbacks while {quote.symbol} holds above {quote.price * 0.97:.2f}",
            exit_strategy=f"Take profit near +{potential_return:.1f}% or on momentum loss",
            risk_management=f"Stop loss {stop:.1f}% below entry",
            monitoring_requirements=("Volume confirmation", "Related news flow"),
            evidence=(quote.symbol, *(i.id for i in mentions)),
            detected_at=batch.as_of,
        )

    def _mean_reversion(
        self, batch: ClassifiedBatch, quote: MarketQuote, mentions: list[NewsItem]
    ) -> Opportunity | None:
        cp = quote.change_percent
        if cp > self.config.oversold_percent:
            return None
        # A decline explained by crisis news is not a reversion setup
        if any(is_crisis(i) for i in mentions):
            return None

        closes = [p.close for p in sorted(batch.history.get(quote.symbol, ()), key=lambda p: p.timestamp)]
        current_rsi = rsi(closes)
        oversold_bonus = 10 if current_rsi is not None and current_rsi < 30 else 0
        confidence = clamp(35 + abs(cp) * 3 + oversold_bonus, high=95)

        potential_return = round(abs(cp) * 0.5, 2)
        stop = round(abs(cp) * 0.3, 2)
        return Opportunity(
            id=make_id("opportunity", "mean_reversion", quote.symbol),
            type=OpportunityType.MEAN_REVERSION,
            description=f"{quote.symbol} oversold after {cp:.1f}% without crisis news",
            assets=(quote.symbol,),
            regions=_regions(mentions),
            confidence=confidence,
            timeframe=Timeframe.SHORT_TERM,
            potential_return=potential_return,
            risk_level=RiskLevel.MEDIUM,
            risk_reward_ratio=_reward_ratio(potential_return, stop),
            entry_strategy="Scale in over several tranches",
            exit_strategy=f"Exit on a +{potential_return:.1f}% rebound",
            risk_management=f"Stop loss {stop:.1f}% below entry",
            monitoring_requirements=("RSI recovery", "Crisis headlines"),
            evidence=(quote.symbol, *(i.id for i in mentions)),
            detected_at=batch.as_of,
        )

    def _grid(
        self, batch: ClassifiedBatch, quote: MarketQuote, mentions: list[NewsItem]
    ) -> Opportunity | None:
        cfg = self.config
        volatility = quote.range_percent
        if volatility is None:
            return None
        if not cfg.grid_min_volatility <= volatility <= cfg.grid_max_volatility:
            return None
        # Trending assets break out of the grid
        if abs(quote.change_percent) >= cfg.momentum_percent:
            return None

        lower, upper = quote.low_24h, quote.high_24h
        grid_size = (upper - lower) / cfg.grid_levels
        profit_per_grid = round(grid_size / quote.price * 100, 4)
        grid = GridParameters(
            symbol=quote.symbol,
            current_price=quote.price,
            grid_levels=cfg.grid_levels,
            lower=lower,
            upper=upper,
            grid_size=round(grid_size, 8),
            profit_per_grid=profit_per_grid,
            volatility=round(volatility, 4),
        )
        history_bonus = 10 if batch.history.get(quote.symbol) else 0
        confidence = clamp(50 - abs(quote.change_percent) * 5 + history_bonus, high=95)

        return Opportunity(
            id=make_id("opportunity", "grid", quote.symbol),
            type=OpportunityType.GRID_TRADING,
            description=(
                f"{quote.symbol} ranging {volatility:.1f}% between {lower:g} and {upper:g}"
            ),
            assets=(quote.symbol,),
            regions=_regions(mentions),
            confidence=confidence,
            timeframe=Timeframe.MEDIUM_TERM,
            potential_return=round(profit_per_grid * cfg.grid_levels / 2, 2),
            risk_level=RiskLevel.LOW,
            risk_reward_ratio=round(volatility / max(profit_per_grid, 0.01) / cfg.grid_levels, 2),
            entry_strategy=f"Place {cfg.grid_levels} grid orders between {lower:g} and {upper:g}",
            exit_strategy="Close the grid if price leaves the range",
            risk_management=f"Stop below {lower * 0.98:g}",
            monitoring_requirements=("Range breakouts", "Volatility expansion"),
            grid=grid,
            evidence=(quote.symbol, *(i.id for i in mentions)),
            detected_at=batch.as_of,
        )
