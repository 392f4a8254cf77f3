"""Tests for the correlation analyzer."""

from datetime import timedelta

import pytest

from conftest import BASE_TIME, classified, make_history, make_quote
from sitmon.analysis.config import CorrelationConfig
from sitmon.analysis.correlation import (
    CorrelationAnalyzer,
    pearson,
    returns_by_timestamp,
    strength_of,
)

RETURNS = [0.02, -0.01, 0.03, -0.02, 0.01, 0.04, -0.03, 0.02, -0.01]


def closes_from(returns: list[float], start: float = 100.0) -> list[float]:
    closes = [start]
    for r in returns:
        closes.append(closes[-1] * (1 + r))
    return closes


class TestHelpers:
    """Tests for the correlation helpers."""

    def test_returns_by_timestamp(self) -> None:
        history = tuple(make_history([100.0, 110.0, 99.0]))
        returns = returns_by_timestamp(history)

        assert len(returns) == 2
        assert list(returns.values()) == pytest.approx([0.1, -0.1])
        assert list(returns) == [history[1].timestamp, history[2].timestamp]

    def test_pearson_constant_series(self) -> None:
        assert pearson([1.0, 1.0, 1.0], [1.0, 2.0, 3.0]) == 0.0

    def test_pearson_bounds(self) -> None:
        assert pearson([1.0, 2.0, 3.0], [2.0, 4.0, 6.0]) == 1.0
        assert pearson([1.0, 2.0, 3.0], [3.0, 2.0, 1.0]) == -1.0

    @pytest.mark.parametrize(
        "value,expected",
        [(0.9, "strong"), (-0.8, "strong"), (0.6, "moderate"), (0.2, "weak")],
    )
    def test_strength_of(self, value: float, expected: str) -> None:
        assert strength_of(value) == expected


class TestCorrelationMatrix:
    """Tests for CorrelationAnalyzer.matrix."""

    @pytest.fixture
    def history(self) -> dict:
        doubled = [2 * r for r in RETURNS]
        inverse = [-r for r in RETURNS]
        noisy = [0.01, 0.02, -0.02, 0.0, 0.03, -0.01, 0.01, -0.04, 0.02]
        return {
            "BTC": make_history(closes_from(RETURNS)),
            "ETH": make_history(closes_from(doubled)),
            "GLD": make_history(closes_from(inverse)),
            "SOL": make_history(closes_from(noisy)),
        }

    def test_symmetric_with_unit_diagonal(self, history: dict) -> None:
        matrix = CorrelationAnalyzer().matrix(classified(history=history))

        n = len(matrix.assets)
        assert n == 4
        for i in range(n):
            assert matrix.correlations[i][i] == 1.0
            for j in range(n):
                assert matrix.correlations[i][j] == matrix.correlations[j][i]
                assert -1.0 <= matrix.correlations[i][j] <= 1.0

    def test_known_correlations(self, history: dict) -> None:
        matrix = CorrelationAnalyzer().matrix(classified(history=history))

        assert matrix.get("BTC", "ETH") == pytest.approx(1.0, abs=1e-3)
        assert matrix.get("BTC", "GLD") == pytest.approx(-1.0, abs=1e-3)

        pairs = {(s.asset1, s.asset2): s for s in matrix.significant_correlations}
        assert pairs[("BTC", "ETH")].direction == "positive"
        assert pairs[("BTC", "GLD")].direction == "negative"
        assert pairs[("BTC", "GLD")].strength == "strong"

    def test_sample_count_and_confidence(self, history: dict) -> None:
        matrix = CorrelationAnalyzer().matrix(classified(history=history))
        assert matrix.sample_count == len(RETURNS)
        assert matrix.confidence == 40 + len(RETURNS) * 2
        assert matrix.time_period

    def test_exclusion_reasons(self, history: dict) -> None:
        history = dict(history)
        history["DOGE"] = make_history([1.0, 1.1, 1.2])
        history["LINK"] = make_history([10.0] * 12)
        batch = classified(quotes=[make_quote("USO", 1.0)], history=history)

        matrix = CorrelationAnalyzer().matrix(batch)

        assert matrix.excluded["USO"] == "no price history"
        assert matrix.excluded["DOGE"] == "insufficient samples (2 < 5)"
        assert matrix.excluded["LINK"] == "constant price series"
        assert "USO" not in matrix.assets

    def test_insufficient_overlap(self, history: dict) -> None:
        history = dict(history)
        history["DOT"] = make_history(
            closes_from(RETURNS), start=BASE_TIME - timedelta(days=60)
        )
        matrix = CorrelationAnalyzer().matrix(classified(history=history))

        assert matrix.excluded["DOT"].startswith("insufficient overlap with")
        assert "DOT" not in matrix.assets
        assert len(matrix.assets) == 4

    def test_configured_assets(self, history: dict) -> None:
        config = CorrelationConfig(assets=["BTC", "ETH"])
        matrix = CorrelationAnalyzer(config).matrix(classified(history=history))
        assert matrix.assets == ("BTC", "ETH")

    def test_single_asset(self, history: dict) -> None:
        matrix = CorrelationAnalyzer().matrix(classified(history={"BTC": history["BTC"]}))
        assert matrix.correlations == ((1.0,),)
        assert matrix.confidence == 0
        assert matrix.significant_correlations == ()

    def test_empty_batch(self) -> None:
        matrix = CorrelationAnalyzer().matrix(classified())
        assert matrix.assets == ()
        assert matrix.correlations == ()
        assert matrix.sample_count == 0

    def test_analyze_wraps_matrix(self, history: dict) -> None:
        batch = classified(history=history)
        assert CorrelationAnalyzer().analyze(batch) == [CorrelationAnalyzer().matrix(batch)]
