"""Tests for the narrative and main character analyzers."""

from datetime import timedelta

from conftest import BASE_TIME, classified, make_raw_news
from sitmon.analysis.characters import MainCharacterAnalyzer
from sitmon.analysis.config import NarrativeConfig
from sitmon.analysis.narratives import NarrativeAnalyzer, narrative_sentiment, overlap
from sitmon.analysis.types import RiskLevel, Timeframe


def storyline() -> list:
    return [
        make_raw_news(
            "Russia launches new attack on Ukraine",
            "Kyiv reports war escalation overnight",
            item_id="ua-1",
            source="Reuters",
            published_at=BASE_TIME - timedelta(hours=6),
        ),
        make_raw_news(
            "Ukraine war: Zelensky calls for more air defense",
            item_id="ua-2",
            source="BBC",
            published_at=BASE_TIME - timedelta(hours=4),
        ),
        make_raw_news(
            "NATO allies discuss Ukraine war support",
            item_id="ua-3",
            source="AP",
            published_at=BASE_TIME - timedelta(hours=2),
        ),
        make_raw_news(
            "Federal Reserve holds interest rate steady",
            item_id="fed-1",
            source="CNBC",
            published_at=BASE_TIME - timedelta(hours=3),
        ),
    ]


class TestNarrativeHelpers:
    """Tests for overlap and sentiment helpers."""

    def test_overlap_coefficient(self) -> None:
        assert overlap({"war"}, {"war", "attack"}) == 1.0
        assert overlap({"war", "oil"}, {"war", "attack"}) == 0.5
        assert overlap(set(), {"war"}) == 0.0

    def test_sentiment_labels(self) -> None:
        batch = classified(
            news=[
                make_raw_news("One", item_id="a", sentiment=0.6),
                make_raw_news("Two", item_id="b", sentiment=-0.6),
                make_raw_news("Three", item_id="c", sentiment=0.5),
            ]
        )
        assert narrative_sentiment(list(batch.news)) == "mixed"
        assert narrative_sentiment(list(batch.news[:1])) == "positive"
        assert narrative_sentiment(list(batch.news[1:2])) == "negative"
        assert narrative_sentiment([]) == "neutral"


class TestNarrativeAnalyzer:
    """Tests for NarrativeAnalyzer."""

    def test_groups_related_items(self) -> None:
        narratives = NarrativeAnalyzer().analyze(classified(news=storyline()))

        assert len(narratives) == 1
        narrative = narratives[0]
        assert narrative.evidence == ("ua-1", "ua-2", "ua-3")
        assert "war" in narrative.keywords
        assert narrative.sources == ("AP", "BBC", "Reuters")
        assert narrative.sentiment == "negative"
        assert narrative.first_detected == BASE_TIME - timedelta(hours=6)
        assert [e.item_id for e in narrative.timeline] == ["ua-1", "ua-2", "ua-3"]

    def test_outcomes_sum_to_hundred(self) -> None:
        narrative = NarrativeAnalyzer().analyze(classified(news=storyline()))[0]

        scenarios = {o.scenario: o for o in narrative.potential_outcomes}
        assert set(scenarios) == {"escalation", "continuation", "resolution"}
        assert sum(o.probability for o in narrative.potential_outcomes) == 100
        assert scenarios["escalation"].probability > scenarios["resolution"].probability

    def test_crisis_storyline_is_immediate(self) -> None:
        narrative = NarrativeAnalyzer().analyze(classified(news=storyline()))[0]
        assert narrative.timeframe == Timeframe.IMMEDIATE

    def test_window_splits_storylines(self) -> None:
        items = storyline()[:2] + [
            make_raw_news(
                "Ukraine war enters new phase",
                item_id="ua-late",
                source="AP",
                published_at=BASE_TIME + timedelta(days=10),
            )
        ]
        clusters = NarrativeAnalyzer().cluster(list(classified(news=items).news))
        assert [[i.id for i in members] for members in clusters] == [
            ["ua-1", "ua-2"],
            ["ua-late"],
        ]

    def test_window_is_bounded_by_first_item(self) -> None:
        items = [
            make_raw_news(
                f"Ukraine war talks continue, day {n}",
                item_id=f"ua-{n}",
                published_at=BASE_TIME + timedelta(hours=60 * n),
            )
            for n in range(6)
        ]
        clusters = NarrativeAnalyzer(NarrativeConfig(window_hours=72)).cluster(
            list(classified(news=items).news)
        )

        assert [[i.id for i in members] for members in clusters] == [
            ["ua-0", "ua-1"],
            ["ua-2", "ua-3"],
            ["ua-4", "ua-5"],
        ]
        for members in clusters:
            assert members[-1].published_at - members[0].published_at <= timedelta(hours=72)

    def test_min_strength_filter(self) -> None:
        config = NarrativeConfig(min_strength=100)
        assert NarrativeAnalyzer(config).analyze(classified(news=storyline())) == []

    def test_stable_id(self) -> None:
        first = NarrativeAnalyzer().analyze(classified(news=storyline()))[0]
        second = NarrativeAnalyzer().analyze(classified(news=list(reversed(storyline()))))[0]
        assert first.id == second.id


class TestMainCharacterAnalyzer:
    """Tests for MainCharacterAnalyzer."""

    def test_recurring_person(self) -> None:
        news = [
            make_raw_news(
                "Powell says rates will hold",
                item_id="p1",
                source="CNBC",
                published_at=BASE_TIME - timedelta(hours=3),
            ),
            make_raw_news(
                "Powell hints at a cut",
                item_id="p2",
                source="Reuters",
                published_at=BASE_TIME - timedelta(hours=2),
            ),
            make_raw_news(
                "Powell testifies before lawmakers",
                item_id="p3",
                source="CNBC",
                published_at=BASE_TIME - timedelta(hours=1),
            ),
        ]
        characters = MainCharacterAnalyzer().analyze(classified(news=news))

        powell = next(c for c in characters if c.name == "Jerome Powell")
        assert powell.type == "person"
        assert powell.mention_count == 3
        # 3 mentions * 10 + 2 sources * 5
        assert powell.influence == 40
        assert powell.monitoring_priority == RiskLevel.MEDIUM
        assert powell.related_assets == ("SPY",)
        assert [a.action for a in powell.recent_actions] == [
            "Powell testifies before lawmakers",
            "Powell hints at a cut",
            "Powell says rates will hold",
        ]
        assert powell.evidence == ("p1", "p2", "p3")

    def test_single_mention_below_influence(self) -> None:
        news = [make_raw_news("Apple ships a new phone", item_id="a1")]
        assert MainCharacterAnalyzer().analyze(classified(news=news)) == []

    def test_crisis_raises_influence(self) -> None:
        characters = MainCharacterAnalyzer().analyze(classified(news=storyline()))
        ukraine = next(c for c in characters if c.name == "Ukraine")
        assert ukraine.monitoring_priority in (RiskLevel.HIGH, RiskLevel.CRITICAL)

    def test_controversial(self) -> None:
        news = [
            make_raw_news("Musk praised", item_id="m1", source="A", sentiment=0.7),
            make_raw_news("Musk criticized", item_id="m2", source="B", sentiment=-0.6),
        ]
        musk = MainCharacterAnalyzer().analyze(classified(news=news))[0]
        assert musk.name == "Elon Musk"
        assert musk.sentiment == "controversial"
