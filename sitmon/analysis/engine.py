"""
Analysis engine - runs one analysis pipeline over a batch.

classify -> fan out to the analyzers -> fuse decisions -> cache as "latest".

Analyzers run concurrently in worker threads against a frozen batch. A
failing analyzer contributes an empty list and marks the run partial.
Findings citing evidence outside the batch are dropped, which also marks
the run partial. A run that was overtaken by a newer one returns its result
but never replaces the cached one.
"""

import asyncio
import time
from collections.abc import Sequence
from datetime import timedelta

from loguru import logger
from pydantic import BaseModel

from sitmon.analysis.base import Analyzer, make_id
from sitmon.analysis.characters import MainCharacterAnalyzer
from sitmon.analysis.classifier import Classifier
from sitmon.analysis.config import AnalysisConfig, DecisionConfig
from sitmon.analysis.correlation import CorrelationAnalyzer
from sitmon.analysis.decisions import DecisionEngine
from sitmon.analysis.narratives import NarrativeAnalyzer
from sitmon.analysis.opportunities import OpportunityAnalyzer
from sitmon.analysis.patterns import PatternAnalyzer
from sitmon.analysis.risks import RiskAnalyzer
from sitmon.analysis.trends import TrendAnalyzer
from sitmon.analysis.types import (
    Alert,
    AnalysisBatch,
    AnalysisMetadata,
    AnalysisResult,
    ClassifiedBatch,
    CorrelationMatrix,
    MainCharacter,
    Narrative,
    RiskLevel,
    RunStatus,
    utcnow,
)
from sitmon.errors import AnalyzerError
from sitmon.services.cache import CacheManager

LATEST_KEY = "latest"

# Decision weight key for each finding family
WEIGHT_KEYS = {
    "patterns": "pattern",
    "trends": "trend",
    "risks": "risk",
    "opportunities": "opportunity",
}


def default_analyzers(config: AnalysisConfig) -> list[Analyzer]:
    """The seven analyzers in fixed dispatch order, minus disabled ones."""
    candidates = [
        (config.patterns.enabled, PatternAnalyzer(config.patterns)),
        (config.trends.enabled, TrendAnalyzer(config.trends)),
        (config.risks.enabled, RiskAnalyzer(config.risks)),
        (config.opportunities.enabled, OpportunityAnalyzer(config.opportunities)),
        (config.correlation.enabled, CorrelationAnalyzer(config.correlation)),
        (config.narratives.enabled, NarrativeAnalyzer(config.narratives)),
        (config.characters.enabled, MainCharacterAnalyzer(config.characters)),
    ]
    return [analyzer for enabled, analyzer in candidates if enabled]


def overall_confidence(
    findings: dict[str, Sequence[BaseModel]], weights: dict[str, float] | None = None
) -> float:
    """
    Weighted mean of the per-family mean confidences; 0 without findings.

    ``weights`` is keyed like ``DecisionConfig.weights`` ("trend", "pattern", ...).
    """
    weights = DecisionConfig().weights if weights is None else weights
    weighted = 0.0
    total = 0.0
    for family, key in WEIGHT_KEYS.items():
        items = findings.get(family, ())
        weight = weights.get(key, 0.0)
        if not items or weight <= 0:
            continue
        weighted += weight * sum(f.confidence for f in items) / len(items)
        total += weight
    if total == 0:
        return 0.0
    return round(min(100.0, weighted / total), 2)


class AnalysisEngine:
    """
    Orchestrates classification, the analyzers and decision fusion.

    Usage:
        engine = AnalysisEngine(AnalysisConfig(), cache=CacheManager())
        result = await engine.run(batch)
        latest = await engine.latest()
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        cache: CacheManager | None = None,
        analyzers: list[Analyzer] | None = None,
    ):
        self.config = config or AnalysisConfig()
        self.cache = cache or CacheManager(
            default_ttl=timedelta(seconds=self.config.cache_ttl_seconds)
        )
        self.classifier = Classifier(self.config.classifier)
        self.analyzers = analyzers if analyzers is not None else default_analyzers(self.config)
        self.decision_engine = DecisionEngine(self.config.decisions)
        self._generation = 0
        self._lock = asyncio.Lock()

    def prepare(self, batch: AnalysisBatch) -> tuple[ClassifiedBatch, int]:
        """Classify the batch and freeze it for the analyzers."""
        items, rejected = self.classifier.classify_batch(batch.news)

        stamps = [i.published_at for i in items] + [q.timestamp for q in batch.quotes]
        stamps += [p.timestamp for bars in batch.history.values() for p in bars]
        # Newest input timestamp is the reference time
        as_of = max(stamps) if stamps else utcnow()

        classified = ClassifiedBatch(
            news=tuple(items),
            quotes=tuple(batch.quotes),
            history={symbol: tuple(bars) for symbol, bars in batch.history.items()},
            as_of=as_of,
        )
        return classified, rejected

    async def _run_analyzer(
        self, analyzer: Analyzer, batch: ClassifiedBatch
    ) -> tuple[list[BaseModel], bool]:
        try:
            findings = await asyncio.to_thread(analyzer.analyze, batch)
            return list(findings), True
        except Exception as e:
            error = AnalyzerError(analyzer.name, str(e))
            logger.error(f"{error.message}")
            return [], False

    @staticmethod
    def _with_known_evidence(
        name: str, findings: list[BaseModel], known: set[str]
    ) -> list[BaseModel]:
        kept = [
            f
            for f in findings
            if not hasattr(f, "evidence") or (f.evidence and set(f.evidence) <= known)
        ]
        if len(kept) != len(findings):
            logger.warning(
                f"Dropped {len(findings) - len(kept)} {name} finding(s) with unknown evidence"
            )
        return kept

    async def run(self, batch: AnalysisBatch) -> AnalysisResult:
        """
        Run the full pipeline over one batch.

        Raises:
            FusionError: Decision fusion failed; the cached result is left as is
        """
        started = time.perf_counter()
        async with self._lock:
            self._generation += 1
            generation = self._generation

        analyzers = list(self.analyzers)
        classified, rejected = self.prepare(batch)
        known = {i.id for i in classified.news}
        known |= {q.symbol for q in classified.quotes} | set(classified.history)

        outcomes = await asyncio.gather(
            *(self._run_analyzer(a, classified) for a in analyzers)
        )

        findings: dict[str, list[BaseModel]] = {}
        failed: list[str] = []
        dropped = 0
        for analyzer, (output, ok) in zip(analyzers, outcomes):
            if not ok:
                failed.append(analyzer.name)
            kept = self._with_known_evidence(analyzer.name, output, known)
            dropped += len(output) - len(kept)
            findings[analyzer.name] = kept

        patterns = findings.get("patterns", [])
        trends = findings.get("trends", [])
        risks = findings.get("risks", [])
        opportunities = findings.get("opportunities", [])
        matrices = findings.get("correlation", [])
        matrix = matrices[0] if matrices else None

        decisions = self.decision_engine.fuse(
            patterns, trends, risks, opportunities, generated_at=classified.as_of
        )

        alerts = [
            Alert(
                id=make_id("alert", risk.id),
                severity=risk.level,
                message=risk.description,
                details=(
                    f"probability {risk.probability:.0f}, impact {risk.potential_impact:.0f}, "
                    f"evidence {', '.join(risk.evidence)}"
                ),
                timestamp=classified.as_of,
            )
            for risk in risks
            if risk.level.rank >= RiskLevel.HIGH.rank
        ]

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        narratives = findings.get("narratives", [])
        characters = findings.get("main_characters", [])
        correlations = matrix.significant_correlations if matrix else ()

        result = AnalysisResult(
            timestamp=utcnow(),
            as_of=classified.as_of,
            patterns=tuple(patterns),
            trends=tuple(trends),
            risks=tuple(risks),
            opportunities=tuple(opportunities),
            correlations=correlations,
            correlation_matrix=matrix,
            narratives=tuple(narratives),
            main_characters=tuple(characters),
            decisions=tuple(decisions),
            alerts=tuple(alerts),
            summary=self._summary(patterns, trends, risks, opportunities),
            confidence=overall_confidence(findings, self.config.decisions.weights),
            status=RunStatus.PARTIAL if failed or dropped else RunStatus.COMPLETE,
            failed_analyzers=tuple(failed),
            rejected_items=rejected,
            metadata=AnalysisMetadata(
                news_count=len(classified.news),
                market_symbols_count=len(classified.quotes),
                analysis_duration_ms=duration_ms,
                patterns_detected=len(patterns),
                trends_identified=len(trends),
                risks_identified=len(risks),
                opportunities_identified=len(opportunities),
                correlations_found=len(correlations),
                narratives_identified=len(narratives),
                characters_identified=len(characters),
                decisions_generated=len(decisions),
                dropped_findings=dropped,
            ),
        )

        async with self._lock:
            if generation != self._generation:
                logger.warning(f"Analysis run {generation} superseded, cache not updated")
                return result.model_copy(update={"status": RunStatus.SUPERSEDED})
            await self.cache.set(LATEST_KEY, result)

        logger.info(
            f"Analysis completed: {len(patterns)} patterns, {len(risks)} risks, "
            f"{len(opportunities)} opportunities, {len(decisions)} decisions "
            f"({duration_ms}ms, {result.status.value})"
        )
        return result

    async def latest(self) -> AnalysisResult | None:
        return await self.cache.get(LATEST_KEY)

    def get_correlations(self, batch: AnalysisBatch) -> CorrelationMatrix:
        classified, _ = self.prepare(batch)
        return CorrelationAnalyzer(self.config.correlation).matrix(classified)

    def get_narratives(self, batch: AnalysisBatch) -> list[Narrative]:
        classified, _ = self.prepare(batch)
        return NarrativeAnalyzer(self.config.narratives).analyze(classified)

    def get_main_characters(self, batch: AnalysisBatch) -> list[MainCharacter]:
        classified, _ = self.prepare(batch)
        return MainCharacterAnalyzer(self.config.characters).analyze(classified)

    @staticmethod
    def _summary(patterns, trends, risks, opportunities) -> str:
        severe = sum(1 for r in risks if r.level.rank >= RiskLevel.HIGH.rank)
        strong = sum(1 for o in opportunities if o.confidence >= 70)
        return (
            f"Analysis detected {len(patterns)} patterns, {len(trends)} trends, "
            f"{len(risks)} risks ({severe} high or critical), and "
            f"{len(opportunities)} opportunities ({strong} high potential)."
        )
