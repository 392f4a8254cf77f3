"""Tests for decision fusion."""

from datetime import timedelta

import pytest

from conftest import BASE_TIME, classified, make_quote, make_raw_news
from sitmon.analysis.decisions import DecisionEngine, decision_type_for
from sitmon.analysis.opportunities import OpportunityAnalyzer
from sitmon.analysis.patterns import PatternAnalyzer
from sitmon.analysis.risks import RiskAnalyzer
from sitmon.analysis.trends import TrendAnalyzer
from sitmon.analysis.types import (
    AnalysisPattern,
    ClassifiedBatch,
    Decision,
    DecisionType,
    PatternType,
    RiskLevel,
    Timeframe,
)
from sitmon.errors import FusionError


def fuse(batch: ClassifiedBatch) -> list[Decision]:
    return DecisionEngine().fuse(
        PatternAnalyzer().analyze(batch),
        TrendAnalyzer().analyze(batch),
        RiskAnalyzer().analyze(batch),
        OpportunityAnalyzer().analyze(batch),
        generated_at=batch.as_of,
    )


class TestDecisionType:
    """Tests for the net signal mapping."""

    @pytest.mark.parametrize(
        "net,expected",
        [
            (4, DecisionType.STRONG_BUY),
            (2, DecisionType.BUY),
            (1, DecisionType.ACCUMULATE),
            (0, DecisionType.MONITOR),
            (-1, DecisionType.REDUCE),
            (-2, DecisionType.SELL),
            (-5, DecisionType.STRONG_SELL),
        ],
    )
    def test_mapping(self, net: int, expected: DecisionType) -> None:
        assert decision_type_for(net) == expected


class TestDecisionEngine:
    """Tests for DecisionEngine.fuse."""

    def test_strong_buy_from_breakout(self) -> None:
        batch = classified(
            news=[make_raw_news("Bitcoin breaks $50,000", "ETF inflows surge", item_id="btc-1")],
            quotes=[make_quote("BTC", 8.2, price=50000.0)],
        )
        decisions = fuse(batch)

        assert len(decisions) == 1
        decision = decisions[0]
        assert decision.type == DecisionType.STRONG_BUY
        assert decision.priority == RiskLevel.HIGH
        assert decision.assets == ("BTC",)
        assert decision.rationale
        assert set(decision.evidence) == {"BTC", "btc-1"}
        assert 60 < decision.confidence < 80
        assert decision.detected_at == batch.as_of
        assert decision.generated_at == batch.as_of
        assert decision.expires_at == batch.as_of + timedelta(hours=1)

    def test_expiry(self) -> None:
        batch = classified(quotes=[make_quote("BTC", 8.2)])
        decision = fuse(batch)[0]
        assert not decision.is_expired(batch.as_of)
        assert decision.is_expired(batch.as_of + timedelta(hours=2))

    def test_decline_becomes_sell(self) -> None:
        decisions = fuse(classified(quotes=[make_quote("ETH", -7.5)]))

        assert len(decisions) == 1
        assert decisions[0].type == DecisionType.STRONG_SELL
        assert decisions[0].priority == RiskLevel.HIGH
        assert decisions[0].risks

    def test_grid_setup(self) -> None:
        quote = make_quote("SOL", 0.4, price=100.0, high_24h=103.0, low_24h=99.0)
        decisions = fuse(classified(quotes=[quote]))

        assert [d.type for d in decisions] == [DecisionType.SETUP_GRID]
        assert decisions[0].priority == RiskLevel.LOW

    def test_lone_flat_trend_yields_nothing(self) -> None:
        assert fuse(classified(quotes=[make_quote("SOL", 0.4)])) == []

    def test_hedge_for_regional_risk(self) -> None:
        news = [
            make_raw_news(
                "Russia launches new attack on Ukraine",
                item_id="ua-1",
                source="Reuters",
                published_at=BASE_TIME - timedelta(hours=2),
            ),
            make_raw_news("Ukraine war escalates", item_id="ua-2", source="BBC"),
        ]
        decisions = fuse(classified(news=news))

        hedge = next(d for d in decisions if d.type == DecisionType.HEDGE)
        assert hedge.priority == RiskLevel.CRITICAL
        assert hedge.assets == ()
        assert set(hedge.evidence) == {"ua-1", "ua-2"}
        assert hedge.detected_at == hedge.generated_at

    def test_monitor_for_strong_topic(self) -> None:
        pattern = AnalysisPattern(
            id="pattern-tariffs",
            type=PatternType.ECONOMIC_INDICATOR,
            name="Tariff escalation",
            description="Tariffs dominate the news flow",
            confidence=70,
            probability=70,
            timeframe=Timeframe.IMMEDIATE,
            evidence=("t1", "t2"),
            first_detected=BASE_TIME,
            last_updated=BASE_TIME,
            detected_at=BASE_TIME,
        )
        decisions = DecisionEngine().fuse([pattern], [], [], [], generated_at=BASE_TIME)

        assert [d.type for d in decisions] == [DecisionType.MONITOR]
        assert decisions[0].priority == RiskLevel.HIGH
        assert decisions[0].evidence == ("t1", "t2")
        assert decisions[0].detected_at == BASE_TIME

    def test_sorted_by_priority(self) -> None:
        batch = classified(
            quotes=[
                make_quote("ETH", -7.5),
                make_quote("SOL", 0.4, high_24h=103.0, low_24h=99.0),
                make_quote("BTC", 2.0),
            ]
        )
        ranks = [d.priority.rank for d in fuse(batch)]
        assert ranks == sorted(ranks, reverse=True)

    def test_deterministic_ids(self) -> None:
        batch = classified(quotes=[make_quote("BTC", 8.2)])
        assert [d.id for d in fuse(batch)] == [d.id for d in fuse(batch)]

    def test_malformed_input_raises(self) -> None:
        engine = DecisionEngine()
        with pytest.raises(FusionError) as exc_info:
            engine.fuse(None, [], [], [], generated_at=BASE_TIME)
        assert exc_info.value.stage == "fusion"

    def test_wrong_finding_type_raises(self) -> None:
        batch = classified(quotes=[make_quote("BTC", 8.2)])
        trends = TrendAnalyzer().analyze(batch)
        with pytest.raises(FusionError, match="pattern"):
            DecisionEngine().fuse(trends, trends, [], [], generated_at=batch.as_of)

    def test_empty_inputs(self) -> None:
        assert DecisionEngine().fuse([], [], [], [], generated_at=BASE_TIME) == []
