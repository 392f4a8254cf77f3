"""
Analysis data model using Pydantic models.

Input records (news items, quotes, price bars), the findings produced by the
analyzers, and the monitor/alert records owned by the monitor registry.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, Field, field_validator


def _naive_utc(value: datetime) -> datetime:
    """Store every timestamp as naive UTC so batches from mixed sources compare."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


Timestamp = Annotated[datetime, AfterValidator(_naive_utc)]


class AlertLevel(str, Enum):
    """Ordinal severity assigned to a news item."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(AlertLevel).index(self)


class NewsCategory(str, Enum):
    POLITICS = "politics"
    TECH = "tech"
    FINANCE = "finance"
    GOV = "gov"
    AI = "ai"
    INTEL = "intel"
    CRYPTO = "crypto"
    MARKETS = "markets"
    REGULATORY = "regulatory"
    BREAKING = "breaking"
    GENERAL = "general"


class Region(str, Enum):
    NORTH_AMERICA = "north-america"
    EUROPE = "europe"
    ASIA = "asia"
    MIDDLE_EAST = "middle-east"
    SOUTH_AMERICA = "south-america"
    AFRICA = "africa"
    AUSTRALIA = "australia"
    GLOBAL = "global"


class RiskLevel(str, Enum):
    """Four-step severity used by risks, decisions and alerts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(RiskLevel).index(self)


class Timeframe(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"


class PatternType(str, Enum):
    GEOPOLITICAL_TENSION = "geopolitical_tension"
    MARKET_CORRECTION = "market_correction"
    TECHNOLOGICAL_BREAKTHROUGH = "technological_breakthrough"
    REGULATORY_CHANGE = "regulatory_change"
    SOCIAL_UNREST = "social_unrest"
    ECONOMIC_INDICATOR = "economic_indicator"
    SENTIMENT_SHIFT = "sentiment_shift"
    VOLUME_SPIKE = "volume_spike"
    PRICE_ACTION = "price_action"


class TrendDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    SIDEWAYS = "sideways"
    VOLATILE = "volatile"
    BREAKING_OUT = "breaking_out"
    BREAKING_DOWN = "breaking_down"


class RiskType(str, Enum):
    MARKET = "market"
    GEOPOLITICAL = "geopolitical"
    REGULATORY = "regulatory"
    TECHNICAL = "technical"
    LIQUIDITY = "liquidity"
    SYSTEMIC = "systemic"


class OpportunityType(str, Enum):
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"
    GRID_TRADING = "grid_trading"


class DecisionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    STRONG_BUY = "strong_buy"
    STRONG_SELL = "strong_sell"
    ACCUMULATE = "accumulate"
    REDUCE = "reduce"
    HEDGE = "hedge"
    MONITOR = "monitor"
    SETUP_GRID = "setup_grid"


class RunStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    SUPERSEDED = "superseded"


# ── Inputs ───────────────────────────────────────────────────────────────────


class RawNewsItem(BaseModel):
    """News item as handed over by ingestion, before classification."""

    id: str | None = None
    title: str = ""
    description: str | None = None
    url: str = ""
    source: str = ""
    published_at: Timestamp | None = None
    category: NewsCategory | None = None
    region: Region | None = None
    keywords: list[str] = Field(default_factory=list)
    sentiment: float | None = None


class NewsItem(BaseModel):
    """Classified news item. Never modified after classification."""

    model_config = {"frozen": True}

    id: str
    title: str
    description: str = ""
    url: str
    source: str
    category: NewsCategory
    published_at: Timestamp
    region: Region | None = None
    keywords: tuple[str, ...] = ()
    alert_level: AlertLevel = AlertLevel.NONE
    sentiment: float | None = Field(default=None, ge=-1.0, le=1.0)

    @property
    def text(self) -> str:
        return f"{self.title} {self.description}"


class MarketQuote(BaseModel):
    """Latest price snapshot for one symbol."""

    model_config = {"frozen": True}

    symbol: str
    name: str = ""
    asset_type: str = ""
    price: float
    change: float = 0.0
    change_percent: float
    volume: float = 0.0
    high_24h: float | None = None
    low_24h: float | None = None
    open_24h: float | None = None
    timestamp: Timestamp
    source: str = ""

    @property
    def range_percent(self) -> float | None:
        """Intraday range as a percentage of price, when high/low are known."""
        if self.high_24h is None or self.low_24h is None or self.price <= 0:
            return None
        return (self.high_24h - self.low_24h) / self.price * 100


class PricePoint(BaseModel):
    """One bar of a price history series."""

    model_config = {"frozen": True}

    timestamp: Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class AnalysisBatch(BaseModel):
    """One run's worth of input data."""

    news: list[RawNewsItem | NewsItem] = Field(default_factory=list)
    quotes: list[MarketQuote] = Field(default_factory=list)
    history: dict[str, list[PricePoint]] = Field(default_factory=dict)


class ClassifiedBatch(BaseModel):
    """Read-only analyzer input: classified items plus market data."""

    model_config = {"frozen": True}

    news: tuple[NewsItem, ...] = ()
    quotes: tuple[MarketQuote, ...] = ()
    history: dict[str, tuple[PricePoint, ...]] = Field(default_factory=dict)
    as_of: Timestamp

    def quote(self, symbol: str) -> MarketQuote | None:
        for quote in self.quotes:
            if quote.symbol == symbol:
                return quote
        return None


# ── Findings ─────────────────────────────────────────────────────────────────


class HeadlineRef(BaseModel):
    """Reference to a news headline."""

    model_config = {"frozen": True}

    title: str
    link: str
    source: str


class Finding(BaseModel):
    """Common shape of every analyzer output."""

    model_config = {"frozen": True}

    id: str
    confidence: float = Field(ge=0, le=100)
    timeframe: Timeframe
    evidence: tuple[str, ...]
    detected_at: Timestamp

    @field_validator("evidence")
    @classmethod
    def _require_evidence(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("a finding must reference at least one evidence id")
        return value


class ImpactVector(BaseModel):
    model_config = {"frozen": True}

    market: float = Field(default=0, ge=-100, le=100)
    geopolitical: float = Field(default=0, ge=-100, le=100)
    economic: float = Field(default=0, ge=-100, le=100)
    social: float = Field(default=0, ge=-100, le=100)


class AnalysisPattern(Finding):
    """Recurring topical or market pattern."""

    type: PatternType
    name: str
    description: str
    probability: float = Field(ge=0, le=100)
    impact: ImpactVector = Field(default_factory=ImpactVector)
    sources: tuple[str, ...] = ()
    headlines: tuple[HeadlineRef, ...] = ()
    first_detected: Timestamp
    last_updated: Timestamp


class TrendIndicators(BaseModel):
    """Indicator values; None where the batch holds too little history."""

    model_config = {"frozen": True}

    moving_average: float | None = None
    rsi: float | None = None
    macd: float | None = None
    volume_ratio: float | None = None
    sentiment: float | None = None


class TrendAnalysis(Finding):
    """Directional signal for one asset or one region."""

    symbol: str | None = None
    asset_class: str | None = None
    region: Region | None = None
    direction: TrendDirection
    strength: float = Field(ge=0, le=100)
    duration_days: float = 0.0
    indicators: TrendIndicators = Field(default_factory=TrendIndicators)
    support_levels: tuple[float, ...] = ()
    resistance_levels: tuple[float, ...] = ()
    breakout_level: float | None = None
    breakdown_level: float | None = None


class RiskAssessment(Finding):
    type: RiskType
    level: RiskLevel
    description: str
    affected_assets: tuple[str, ...] = ()
    affected_regions: tuple[Region, ...] = ()
    probability: float = Field(ge=0, le=100)
    potential_impact: float = Field(ge=0, le=100)
    mitigation_strategies: tuple[str, ...] = ()
    monitoring_indicators: tuple[str, ...] = ()

    @property
    def score(self) -> float:
        return self.probability * self.potential_impact / 100


class GridParameters(BaseModel):
    """Suggested grid for a range-bound asset."""

    model_config = {"frozen": True}

    symbol: str
    current_price: float
    grid_levels: int
    lower: float
    upper: float
    grid_size: float
    profit_per_grid: float
    volatility: float


class Opportunity(Finding):
    type: OpportunityType
    description: str
    assets: tuple[str, ...]
    regions: tuple[Region, ...] = ()
    potential_return: float
    risk_level: RiskLevel
    risk_reward_ratio: float
    entry_strategy: str
    exit_strategy: str
    risk_management: str
    monitoring_requirements: tuple[str, ...] = ()
    grid: GridParameters | None = None


class SignificantCorrelation(BaseModel):
    model_config = {"frozen": True}

    asset1: str
    asset2: str
    correlation: float = Field(ge=-1, le=1)
    strength: Literal["weak", "moderate", "strong"]
    direction: Literal["positive", "negative"]


class CorrelationMatrix(BaseModel):
    """Pairwise Pearson correlation of asset returns."""

    model_config = {"frozen": True}

    assets: tuple[str, ...] = ()
    correlations: tuple[tuple[float, ...], ...] = ()
    excluded: dict[str, str] = Field(default_factory=dict)
    time_period: str = ""
    sample_count: int = 0
    confidence: float = Field(default=0, ge=0, le=100)
    significant_correlations: tuple[SignificantCorrelation, ...] = ()
    timestamp: Timestamp

    def get(self, asset1: str, asset2: str) -> float:
        i = self.assets.index(asset1)
        j = self.assets.index(asset2)
        return self.correlations[i][j]


class TimelineEntry(BaseModel):
    model_config = {"frozen": True}

    date: Timestamp
    event: str
    impact: float
    item_id: str


class NarrativeOutcome(BaseModel):
    model_config = {"frozen": True}

    scenario: str
    probability: float = Field(ge=0, le=100)
    impact: float


class Narrative(Finding):
    """Storyline built from items sharing topical keywords."""

    title: str
    description: str
    keywords: tuple[str, ...]
    sentiment: Literal["positive", "negative", "neutral", "mixed"]
    strength: float = Field(ge=0, le=100)
    sources: tuple[str, ...] = ()
    related_assets: tuple[str, ...] = ()
    related_regions: tuple[Region, ...] = ()
    timeline: tuple[TimelineEntry, ...] = ()
    potential_outcomes: tuple[NarrativeOutcome, ...] = ()
    first_detected: Timestamp
    last_updated: Timestamp


class CharacterAction(BaseModel):
    model_config = {"frozen": True}

    action: str
    date: Timestamp
    impact: float
    sources: tuple[str, ...] = ()


class MainCharacter(Finding):
    """Recurring person, organization, company or country."""

    name: str
    type: Literal["person", "organization", "country", "company"]
    description: str
    influence: float = Field(ge=0, le=100)
    mention_count: int
    sentiment: Literal["positive", "negative", "neutral", "controversial"]
    recent_actions: tuple[CharacterAction, ...] = ()
    related_assets: tuple[str, ...] = ()
    monitoring_priority: RiskLevel


class Decision(Finding):
    """Ranked recommendation fused from several findings."""

    type: DecisionType
    priority: RiskLevel
    description: str
    rationale: tuple[str, ...]
    assets: tuple[str, ...] = ()
    expected_outcome: str = ""
    risks: tuple[str, ...] = ()
    alternatives: tuple[str, ...] = ()
    monitoring: tuple[str, ...] = ()
    generated_at: Timestamp
    expires_at: Timestamp

    @field_validator("rationale")
    @classmethod
    def _require_rationale(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("a decision must state at least one rationale")
        return value

    def is_expired(self, now: datetime | None = None) -> bool:
        """Expired decisions are stale and must not be acted on."""
        return (now or utcnow()) >= self.expires_at


# ── Monitors and alerts ──────────────────────────────────────────────────────


class Monitor(BaseModel):
    """Standing keyword query. Mutated only by the monitor registry."""

    model_config = {"validate_assignment": True}

    id: str
    query: str
    alert_threshold: float = Field(default=0.7, ge=0, le=1)
    check_interval: int = Field(default=3600, ge=0)
    is_active: bool = True
    created_at: Timestamp = Field(default_factory=utcnow)
    last_checked: Timestamp | None = None
    alert_count: int = 0

    def is_due(self, now: datetime) -> bool:
        if self.last_checked is None:
            return True
        return now - self.last_checked >= timedelta(seconds=self.check_interval)


class Alert(BaseModel):
    """Entry of the alert log. Only the acknowledgment fields change."""

    id: str
    monitor_id: str | None = None
    query: str | None = None
    severity: RiskLevel
    message: str
    details: str | None = None
    timestamp: Timestamp = Field(default_factory=utcnow)
    acknowledged: bool = False
    acknowledged_at: Timestamp | None = None
    acknowledged_by: str | None = None

    def acknowledge(self, by: str | None = None) -> None:
        self.acknowledged = True
        self.acknowledged_at = utcnow()
        self.acknowledged_by = by


# ── Result ───────────────────────────────────────────────────────────────────


class AnalysisMetadata(BaseModel):
    model_config = {"frozen": True}

    news_count: int = 0
    market_symbols_count: int = 0
    analysis_duration_ms: float = 0.0
    patterns_detected: int = 0
    trends_identified: int = 0
    risks_identified: int = 0
    opportunities_identified: int = 0
    correlations_found: int = 0
    narratives_identified: int = 0
    characters_identified: int = 0
    decisions_generated: int = 0
    # Findings dropped for citing unknown evidence
    dropped_findings: int = 0


class AnalysisResult(BaseModel):
    """Complete snapshot of one analysis run."""

    model_config = {"frozen": True}

    timestamp: Timestamp
    as_of: Timestamp
    patterns: tuple[AnalysisPattern, ...] = ()
    trends: tuple[TrendAnalysis, ...] = ()
    risks: tuple[RiskAssessment, ...] = ()
    opportunities: tuple[Opportunity, ...] = ()
    correlations: tuple[SignificantCorrelation, ...] = ()
    correlation_matrix: CorrelationMatrix | None = None
    narratives: tuple[Narrative, ...] = ()
    main_characters: tuple[MainCharacter, ...] = ()
    decisions: tuple[Decision, ...] = ()
    alerts: tuple[Alert, ...] = ()
    summary: str = ""
    confidence: float = Field(default=0, ge=0, le=100)
    status: RunStatus = RunStatus.COMPLETE
    failed_analyzers: tuple[str, ...] = ()
    rejected_items: int = 0
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
