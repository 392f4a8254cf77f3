"""
Correlation analyzer - pairwise Pearson correlation of asset returns.

Returns are computed per bar from the batch's price history and compared over
the timestamps two assets share. Assets that cannot be correlated are listed
in ``CorrelationMatrix.excluded`` with the reason.
"""

from datetime import datetime
from typing import Literal

import numpy as np
from loguru import logger

from sitmon.analysis.config import CorrelationConfig
from sitmon.analysis.types import (
    ClassifiedBatch,
    CorrelationMatrix,
    PricePoint,
    SignificantCorrelation,
)


def returns_by_timestamp(history: tuple[PricePoint, ...]) -> dict[datetime, float]:
    """Simple returns keyed by the closing bar's timestamp."""
    bars: dict[datetime, PricePoint] = {}
    for point in sorted(history, key=lambda p: p.timestamp):
        bars[point.timestamp] = point

    ordered = list(bars.values())
    returns = {}
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.close > 0:
            returns[cur.timestamp] = cur.close / prev.close - 1
    return returns


def strength_of(value: float) -> Literal["weak", "moderate", "strong"]:
    magnitude = abs(value)
    if magnitude >= 0.75:
        return "strong"
    if magnitude >= 0.5:
        return "moderate"
    return "weak"


def pearson(a: list[float], b: list[float]) -> float:
    """Pearson r clipped to [-1, 1]; 0.0 when either side is constant."""
    x = np.asarray(a, dtype=float)
    y = np.asarray(b, dtype=float)
    if x.std() == 0 or y.std() == 0:
        return 0.0
    r = float(np.corrcoef(x, y)[0, 1])
    return round(max(-1.0, min(1.0, r)), 4)


class CorrelationAnalyzer:
    name = "correlation"

    def __init__(self, config: CorrelationConfig | None = None):
        self.config = config or CorrelationConfig()

    def _candidates(self, batch: ClassifiedBatch) -> list[str]:
        if self.config.assets:
            return list(dict.fromkeys(self.config.assets))
        symbols = {q.symbol for q in batch.quotes} | set(batch.history)
        return sorted(symbols)

    def analyze(self, batch: ClassifiedBatch) -> list[CorrelationMatrix]:
        return [self.matrix(batch)]

    def matrix(self, batch: ClassifiedBatch) -> CorrelationMatrix:
        min_samples = self.config.min_samples
        excluded: dict[str, str] = {}
        series: dict[str, dict[datetime, float]] = {}

        for asset in self._candidates(batch):
            history = batch.history.get(asset, ())
            if not history:
                excluded[asset] = "no price history"
                continue
            returns = returns_by_timestamp(history)
            if len(returns) < min_samples:
                excluded[asset] = f"insufficient samples ({len(returns)} < {min_samples})"
                continue
            if np.std(list(returns.values())) == 0:
                excluded[asset] = "constant price series"
                continue
            series[asset] = returns

        self._prune_short_overlaps(series, excluded)

        assets = sorted(series)
        n = len(assets)
        grid = [[1.0] * n for _ in range(n)]
        significant: list[SignificantCorrelation] = []
        overlaps: list[int] = []

        for i in range(n):
            for j in range(i + 1, n):
                a, b = series[assets[i]], series[assets[j]]
                shared = sorted(a.keys() & b.keys())
                overlaps.append(len(shared))
                r = pearson([a[t] for t in shared], [b[t] for t in shared])
                grid[i][j] = grid[j][i] = r
                if abs(r) >= self.config.min_correlation:
                    significant.append(
                        SignificantCorrelation(
                            asset1=assets[i],
                            asset2=assets[j],
                            correlation=r,
                            strength=strength_of(r),
                            direction="positive" if r > 0 else "negative",
                        )
                    )

        significant.sort(key=lambda s: (-abs(s.correlation), s.asset1, s.asset2))

        if overlaps:
            sample_count = min(overlaps)
        elif assets:
            sample_count = len(series[assets[0]])
        else:
            sample_count = 0

        stamps = sorted({t for returns in series.values() for t in returns})
        time_period = (
            f"{stamps[0]:%Y-%m-%d %H:%M} to {stamps[-1]:%Y-%m-%d %H:%M}" if stamps else ""
        )
        confidence = min(95, 40 + sample_count * 2) if n >= 2 else 0

        if excluded:
            logger.debug(f"Correlation excluded: {excluded}")

        return CorrelationMatrix(
            assets=tuple(assets),
            correlations=tuple(tuple(row) for row in grid),
            excluded=excluded,
            time_period=time_period,
            sample_count=sample_count,
            confidence=confidence,
            significant_correlations=tuple(significant),
            timestamp=batch.as_of,
        )

    def _prune_short_overlaps(
        self, series: dict[str, dict[datetime, float]], excluded: dict[str, str]
    ) -> None:
        """Drop assets until every remaining pair shares enough timestamps."""
        min_samples = self.config.min_samples
        while len(series) >= 2:
            deficits: dict[str, list[str]] = {}
            assets = sorted(series)
            for i, a in enumerate(assets):
                for b in assets[i + 1 :]:
                    if len(series[a].keys() & series[b].keys()) < min_samples:
                        deficits.setdefault(a, []).append(b)
                        deficits.setdefault(b, []).append(a)
            if not deficits:
                return

            # The weaker asset: most short overlaps, then fewest samples
            worst = max(
                deficits,
                key=lambda s: (len(deficits[s]), -len(series[s]), s),
            )
            excluded[worst] = f"insufficient overlap with {', '.join(sorted(deficits[worst]))}"
            del series[worst]
