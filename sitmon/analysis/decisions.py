"""
Decision engine - fuses patterns, trends, risks and opportunities into
ranked recommendations.

Findings are grouped by the asset they concern. Each group yields one
decision whose type follows the net direction of its signals and whose
confidence is the weighted mean of the contributing findings' confidences
(weights per finding kind, see ``DecisionConfig.weights``). Risks that
concern no asset become hedge decisions; strong topic patterns become
monitor decisions.
"""

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta

from loguru import logger
from pydantic import BaseModel, ValidationError

from sitmon.analysis.base import make_id
from sitmon.analysis.config import DecisionConfig
from sitmon.analysis.types import (
    AnalysisPattern,
    Decision,
    DecisionType,
    Opportunity,
    OpportunityType,
    PatternType,
    RiskAssessment,
    RiskLevel,
    Timeframe,
    TrendAnalysis,
    TrendDirection,
)
from sitmon.errors import FusionError

EXPIRY: dict[Timeframe, timedelta] = {
    Timeframe.IMMEDIATE: timedelta(hours=1),
    Timeframe.SHORT_TERM: timedelta(hours=24),
    Timeframe.MEDIUM_TERM: timedelta(days=7),
    Timeframe.LONG_TERM: timedelta(days=30),
}

_TIMEFRAME_ORDER = list(Timeframe)

TREND_SIGNAL: dict[TrendDirection, int] = {
    TrendDirection.BREAKING_OUT: 2,
    TrendDirection.BULLISH: 1,
    TrendDirection.SIDEWAYS: 0,
    TrendDirection.VOLATILE: 0,
    TrendDirection.BEARISH: -1,
    TrendDirection.BREAKING_DOWN: -2,
}

RISK_SIGNAL: dict[RiskLevel, int] = {
    RiskLevel.CRITICAL: -2,
    RiskLevel.HIGH: -2,
    RiskLevel.MEDIUM: -1,
    RiskLevel.LOW: 0,
}

ASSET_PATTERN_TYPES = (PatternType.PRICE_ACTION, PatternType.VOLUME_SPIKE)

ALTERNATIVES: dict[DecisionType, tuple[str, ...]] = {
    DecisionType.STRONG_BUY: ("Scale in over several sessions", "Wait for a retest of support"),
    DecisionType.BUY: ("Wait for a pullback", "Scale in gradually"),
    DecisionType.ACCUMULATE: ("Dollar-cost average", "Wait for confirmation"),
    DecisionType.MONITOR: ("Set price alerts", "Revisit after the next analysis run"),
    DecisionType.REDUCE: ("Tighten stop losses", "Hedge instead of selling"),
    DecisionType.SELL: ("Reduce partially", "Hedge with options"),
    DecisionType.STRONG_SELL: ("Exit fully", "Hedge the remaining exposure"),
    DecisionType.HEDGE: ("Reduce gross exposure", "Raise cash"),
    DecisionType.SETUP_GRID: ("Narrow the grid range", "Wait for a range confirmation"),
}


def decision_type_for(net: int) -> DecisionType:
    if net >= 3:
        return DecisionType.STRONG_BUY
    if net == 2:
        return DecisionType.BUY
    if net == 1:
        return DecisionType.ACCUMULATE
    if net == 0:
        return DecisionType.MONITOR
    if net == -1:
        return DecisionType.REDUCE
    if net == -2:
        return DecisionType.SELL
    return DecisionType.STRONG_SELL


class _Group:
    """Findings concerning one asset."""

    def __init__(self) -> None:
        self.trends: list[TrendAnalysis] = []
        self.patterns: list[AnalysisPattern] = []
        self.risks: list[RiskAssessment] = []
        self.opportunities: list[Opportunity] = []

    def weighted(self) -> list[tuple[str, BaseModel]]:
        return (
            [("trend", t) for t in self.trends]
            + [("pattern", p) for p in self.patterns]
            + [("risk", r) for r in self.risks]
            + [("opportunity", o) for o in self.opportunities]
        )


class DecisionEngine:
    """Pure fusion step; holds only configuration."""

    def __init__(self, config: DecisionConfig | None = None):
        self.config = config or DecisionConfig()

    @staticmethod
    def _check(kind: str, findings: Sequence, model: type[BaseModel]) -> list:
        if findings is None or isinstance(findings, (str, bytes)) or not isinstance(
            findings, Sequence
        ):
            raise FusionError(f"Malformed {kind} output: expected a list of findings")
        for finding in findings:
            if not isinstance(finding, model):
                raise FusionError(
                    f"Malformed {kind} output: got {type(finding).__name__}, "
                    f"expected {model.__name__}"
                )
        return list(findings)

    def _confidence(self, contributors: list[tuple[str, BaseModel]]) -> float:
        weights = self.config.weights
        total = sum(weights.get(kind, 0) for kind, _ in contributors)
        if total <= 0:
            return 0.0
        score = sum(weights.get(kind, 0) * f.confidence for kind, f in contributors)
        return round(min(100.0, score / total), 2)

    @staticmethod
    def _evidence(contributors: list[tuple[str, BaseModel]]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(e for _, f in contributors for e in f.evidence))

    @staticmethod
    def _timeframe(contributors: list[tuple[str, BaseModel]]) -> Timeframe:
        return min((f.timeframe for _, f in contributors), key=_TIMEFRAME_ORDER.index)

    def fuse(
        self,
        patterns: Sequence[AnalysisPattern],
        trends: Sequence[TrendAnalysis],
        risks: Sequence[RiskAssessment],
        opportunities: Sequence[Opportunity],
        generated_at: datetime,
    ) -> list[Decision]:
        """
        Combine analyzer findings into ranked decisions.

        Raises:
            FusionError: An input is not a list of the expected finding type,
                or a fused decision fails validation
        """
        patterns = self._check("pattern", patterns, AnalysisPattern)
        trends = self._check("trend", trends, TrendAnalysis)
        risks = self._check("risk", risks, RiskAssessment)
        opportunities = self._check("opportunity", opportunities, Opportunity)

        groups: dict[str, _Group] = defaultdict(_Group)
        topic_patterns: list[AnalysisPattern] = []
        portfolio_risks: list[RiskAssessment] = []

        for trend in trends:
            if trend.symbol:
                groups[trend.symbol].trends.append(trend)
        for pattern in patterns:
            if pattern.type in ASSET_PATTERN_TYPES:
                groups[pattern.evidence[0]].patterns.append(pattern)
            else:
                topic_patterns.append(pattern)
        for risk in risks:
            if risk.affected_assets:
                for asset in risk.affected_assets:
                    groups[asset].risks.append(risk)
            else:
                portfolio_risks.append(risk)
        for opportunity in opportunities:
            for asset in opportunity.assets:
                groups[asset].opportunities.append(opportunity)

        try:
            decisions = [
                d
                for asset in sorted(groups)
                if (d := self._asset_decision(asset, groups[asset], generated_at))
            ]
            decisions.extend(
                self._hedge_decision(r, generated_at)
                for r in portfolio_risks
                if r.level.rank >= RiskLevel.HIGH.rank
            )
            decisions.extend(
                self._monitor_decision(p, generated_at)
                for p in topic_patterns
                if p.confidence >= 60
            )
        except ValidationError as e:
            raise FusionError(f"Fused decision failed validation: {e}") from e

        decisions = [d for d in decisions if d.confidence >= self.config.min_confidence]
        decisions.sort(key=lambda d: (-d.priority.rank, -d.confidence, d.id))
        decisions = decisions[: self.config.max_decisions]

        logger.info(
            f"Fusion: {len(decisions)} decisions from {len(patterns)} patterns, "
            f"{len(trends)} trends, {len(risks)} risks, {len(opportunities)} opportunities"
        )
        return decisions

    def _asset_decision(
        self, asset: str, group: _Group, generated_at: datetime
    ) -> Decision | None:
        contributors = group.weighted()
        net = sum(TREND_SIGNAL[t.direction] for t in group.trends)
        net += sum(RISK_SIGNAL[r.level] for r in group.risks)
        net += sum(
            1
            for o in group.opportunities
            if o.type in (OpportunityType.MOMENTUM, OpportunityType.MEAN_REVERSION)
        )

        grids = [o for o in group.opportunities if o.type == OpportunityType.GRID_TRADING]
        if grids and net == 0 and not group.risks:
            decision_type = DecisionType.SETUP_GRID
        else:
            decision_type = decision_type_for(net)

        # A lone flat trend is not worth a recommendation
        if decision_type == DecisionType.MONITOR and not (
            group.risks or group.opportunities or group.patterns
        ):
            return None

        if group.risks:
            worst = max((r.level for r in group.risks), key=lambda lv: lv.rank)
            priority = max(worst, RiskLevel.MEDIUM, key=lambda lv: lv.rank)
        elif decision_type in (DecisionType.STRONG_BUY, DecisionType.STRONG_SELL):
            priority = RiskLevel.HIGH
        elif decision_type in (DecisionType.MONITOR, DecisionType.SETUP_GRID):
            priority = RiskLevel.LOW
        else:
            priority = RiskLevel.MEDIUM

        rationale = [
            f"{t.symbol} trend {t.direction.value} (strength {t.strength:.0f})"
            for t in group.trends
        ]
        rationale += [p.description for p in group.patterns]
        rationale += [o.description for o in group.opportunities]
        rationale += [r.description for r in group.risks]

        monitoring = [m for o in group.opportunities for m in o.monitoring_requirements]
        monitoring += [m for r in group.risks for m in r.monitoring_indicators]
        timeframe = self._timeframe(contributors)
        action = decision_type.value.replace("_", " ")

        return Decision(
            id=make_id("decision", asset, decision_type.value),
            type=decision_type,
            priority=priority,
            description=f"{action.title()} {asset}",
            rationale=tuple(rationale),
            assets=(asset,),
            expected_outcome=(
                f"{asset} continues {'up' if net > 0 else 'down' if net < 0 else 'sideways'} "
                f"over the {timeframe.value.replace('_', ' ')}"
            ),
            risks=tuple(r.description for r in group.risks),
            alternatives=ALTERNATIVES[decision_type],
            monitoring=tuple(dict.fromkeys(monitoring)),
            confidence=self._confidence(contributors),
            timeframe=timeframe,
            evidence=self._evidence(contributors),
            detected_at=generated_at,
            generated_at=generated_at,
            expires_at=generated_at + EXPIRY[timeframe],
        )

    def _hedge_decision(self, risk: RiskAssessment, generated_at: datetime) -> Decision:
        contributors = [("risk", risk)]
        return Decision(
            id=make_id("decision", risk.id, DecisionType.HEDGE.value),
            type=DecisionType.HEDGE,
            priority=risk.level,
            description=f"Hedge against {risk.type.value} risk",
            rationale=(risk.description,),
            expected_outcome="Reduced drawdown if the risk materializes",
            risks=(risk.description,),
            alternatives=ALTERNATIVES[DecisionType.HEDGE],
            monitoring=risk.monitoring_indicators,
            confidence=self._confidence(contributors),
            timeframe=risk.timeframe,
            evidence=risk.evidence,
            detected_at=generated_at,
            generated_at=generated_at,
            expires_at=generated_at + EXPIRY[risk.timeframe],
        )

    def _monitor_decision(
        self, pattern: AnalysisPattern, generated_at: datetime
    ) -> Decision:
        contributors = [("pattern", pattern)]
        priority = RiskLevel.HIGH if pattern.timeframe == Timeframe.IMMEDIATE else RiskLevel.MEDIUM
        return Decision(
            id=make_id("decision", pattern.id, DecisionType.MONITOR.value),
            type=DecisionType.MONITOR,
            priority=priority,
            description=f"Monitor {pattern.name}",
            rationale=(pattern.description,),
            expected_outcome=f"{pattern.name} keeps developing",
            alternatives=ALTERNATIVES[DecisionType.MONITOR],
            monitoring=tuple(h.title for h in pattern.headlines[:3]),
            confidence=self._confidence(contributors),
            timeframe=pattern.timeframe,
            evidence=pattern.evidence,
            detected_at=generated_at,
            generated_at=generated_at,
            expires_at=generated_at + EXPIRY[pattern.timeframe],
        )
