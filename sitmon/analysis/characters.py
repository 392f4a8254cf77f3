"""
Main character analyzer - recurring people, organizations, companies and countries.
"""

from loguru import logger

from sitmon.analysis.base import clamp, make_id
from sitmon.analysis.config import ENTITIES, CharacterConfig, EntityDefinition, matching_terms
from sitmon.analysis.types import (
    AlertLevel,
    CharacterAction,
    ClassifiedBatch,
    MainCharacter,
    NewsItem,
    RiskLevel,
    Timeframe,
)


def _priority(influence: float) -> RiskLevel:
    if influence >= 75:
        return RiskLevel.CRITICAL
    if influence >= 50:
        return RiskLevel.HIGH
    if influence >= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _sentiment(items: list[NewsItem]) -> str:
    scores = [i.sentiment for i in items if i.sentiment is not None]
    if not scores:
        return "neutral"
    if max(scores) >= 0.4 and min(scores) <= -0.4:
        return "controversial"
    mean = sum(scores) / len(scores)
    if mean > 0.1:
        return "positive"
    if mean < -0.1:
        return "negative"
    return "neutral"


class MainCharacterAnalyzer:
    name = "main_characters"

    def __init__(
        self,
        config: CharacterConfig | None = None,
        entities: tuple[EntityDefinition, ...] | None = None,
    ):
        self.config = config or CharacterConfig()
        self.entities = entities if entities is not None else ENTITIES

    def analyze(self, batch: ClassifiedBatch) -> list[MainCharacter]:
        characters = []
        for entity in self.entities:
            items = [i for i in batch.news if matching_terms(i.text, entity.aliases)]
            if items:
                characters.append(self._build(batch, entity, items))

        characters = [c for c in characters if c.influence >= self.config.min_influence]
        characters.sort(key=lambda c: (-c.influence, c.name))
        if characters:
            logger.debug(f"Main characters: {', '.join(c.name for c in characters[:5])}")
        return characters[: self.config.max_characters]

    def _build(
        self, batch: ClassifiedBatch, entity: EntityDefinition, items: list[NewsItem]
    ) -> MainCharacter:
        items = sorted(items, key=lambda i: (i.published_at, i.id))
        sources = {i.source for i in items}
        avg_rank = sum(i.alert_level.rank for i in items) / len(items)
        critical = any(i.alert_level == AlertLevel.CRITICAL for i in items)
        influence = clamp(
            len(items) * 10 + avg_rank * 10 + len(sources) * 5 + (10 if critical else 0)
        )

        return MainCharacter(
            id=make_id("character", entity.name),
            name=entity.name,
            type=entity.type,
            description=(
                f"{entity.type.title()} mentioned in {len(items)} item(s) "
                f"across {len(sources)} source(s)"
            ),
            influence=influence,
            mention_count=len(items),
            sentiment=_sentiment(items),
            recent_actions=tuple(
                CharacterAction(
                    action=i.title,
                    date=i.published_at,
                    impact=i.alert_level.rank * 25,
                    sources=(i.source,),
                )
                for i in reversed(items[-3:])
            ),
            related_assets=entity.related_assets,
            monitoring_priority=_priority(influence),
            confidence=min(95, 30 + len(items) * 10 + len(sources) * 5),
            timeframe=Timeframe.SHORT_TERM,
            evidence=tuple(i.id for i in items),
            detected_at=batch.as_of,
        )
