"""
Analysis configuration - keyword tables, pattern topics, entities and thresholds.
"""

import json
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field

from sitmon.analysis.types import AlertLevel, NewsCategory, PatternType, Region

# Alert keywords by tier, checked from critical down to low
ALERT_KEYWORDS: dict[AlertLevel, tuple[str, ...]] = {
    AlertLevel.CRITICAL: (
        "war",
        "attack",
        "terror",
        "terrorist",
        "crisis",
        "emergency",
        "disaster",
        "explosion",
        "shooting",
        "hostage",
        "invasion",
        "nuclear",
        "biological",
        "chemical weapon",
        "pandemic",
        "epidemic",
    ),
    AlertLevel.HIGH: (
        "conflict",
        "violence",
        "protest",
        "riot",
        "strike",
        "sanction",
        "embargo",
        "default",
        "bankruptcy",
        "crash",
        "collapse",
        "hack",
        "breach",
        "leak",
        "outage",
        "blackout",
    ),
    AlertLevel.MEDIUM: (
        "warning",
        "alert",
        "danger",
        "threat",
        "risk",
        "concern",
        "investigation",
        "inquiry",
        "hearing",
        "lawsuit",
        "fine",
        "suspension",
        "delay",
        "cancellation",
        "recall",
    ),
    AlertLevel.LOW: (
        "issue",
        "problem",
        "challenge",
        "difficulty",
        "setback",
        "decline",
        "drop",
        "fall",
        "slowdown",
        "weakness",
        "uncertainty",
        "volatility",
        "fluctuation",
    ),
}

# Category keyword mapping
CATEGORY_KEYWORDS: dict[NewsCategory, tuple[str, ...]] = {
    NewsCategory.POLITICS: (
        "politics",
        "election",
        "vote",
        "parliament",
        "congress",
        "senate",
    ),
    NewsCategory.TECH: (
        "tech",
        "technology",
        "innovation",
        "startup",
        "software",
        "hardware",
        "device",
    ),
    NewsCategory.FINANCE: (
        "finance",
        "economy",
        "bank",
        "investment",
        "stock",
        "bond",
        "currency",
    ),
    NewsCategory.GOV: (
        "government",
        "policy",
        "law",
        "legislation",
        "bill",
    ),
    NewsCategory.AI: (
        "ai",
        "artificial intelligence",
        "machine learning",
        "deep learning",
        "neural network",
    ),
    NewsCategory.INTEL: (
        "intelligence",
        "security",
        "defense",
        "military",
        "surveillance",
    ),
    NewsCategory.CRYPTO: (
        "crypto",
        "cryptocurrency",
        "blockchain",
        "bitcoin",
        "ethereum",
        "defi",
        "nft",
    ),
    NewsCategory.MARKETS: (
        "market",
        "trading",
        "exchange",
        "price",
        "volume",
        "liquidity",
    ),
    NewsCategory.REGULATORY: (
        "regulation",
        "regulatory",
        "compliance",
        "license",
        "approval",
        "ban",
    ),
    NewsCategory.BREAKING: (
        "breaking",
        "urgent",
        "developing",
    ),
}

# Region keyword mapping, dictionary order is the tie-break
REGION_KEYWORDS: dict[Region, tuple[str, ...]] = {
    Region.NORTH_AMERICA: (
        "usa",
        "u.s.",
        "united states",
        "america",
        "washington",
        "canada",
        "mexico",
    ),
    Region.EUROPE: (
        "europe",
        "european",
        "eu",
        "uk",
        "britain",
        "germany",
        "france",
        "italy",
        "spain",
        "poland",
        "ukraine",
        "russia",
        "nato",
    ),
    Region.ASIA: (
        "asia",
        "china",
        "japan",
        "india",
        "korea",
        "taiwan",
        "vietnam",
        "singapore",
        "indonesia",
        "south china sea",
    ),
    Region.MIDDLE_EAST: (
        "middle east",
        "israel",
        "iran",
        "saudi",
        "uae",
        "qatar",
        "syria",
        "iraq",
        "lebanon",
        "gaza",
        "yemen",
    ),
    Region.SOUTH_AMERICA: (
        "south america",
        "brazil",
        "argentina",
        "chile",
        "colombia",
        "peru",
        "venezuela",
    ),
    Region.AFRICA: (
        "africa",
        "nigeria",
        "egypt",
        "kenya",
        "ethiopia",
        "sudan",
        "sahel",
    ),
    Region.AUSTRALIA: ("australia", "new zealand", "oceania"),
    Region.GLOBAL: ("global", "worldwide", "international"),
}

# Asset symbol -> aliases used to link news items to quotes
ASSET_KEYWORDS: dict[str, tuple[str, ...]] = {
    "BTC": ("bitcoin", "btc", "satoshi"),
    "ETH": ("ethereum", "eth", "ether"),
    "SOL": ("solana",),
    "XRP": ("ripple", "xrp"),
    "ADA": ("cardano",),
    "DOGE": ("dogecoin", "doge"),
    "DOT": ("polkadot",),
    "AVAX": ("avalanche", "avax"),
    "MATIC": ("polygon", "matic"),
    "LINK": ("chainlink",),
    "SPY": ("s&p 500", "s&p"),
    "QQQ": ("nasdaq",),
    "GLD": ("gold",),
    "USO": ("crude oil", "oil price", "brent"),
}

# Market themes added as keyword tags
MARKET_KEYWORDS: dict[str, tuple[str, ...]] = {
    "etf": ("etf", "exchange traded fund", "spot etf"),
    "regulation": ("regulation", "regulatory", "sec", "cftc", "finra"),
    "halving": ("halving",),
    "mining": ("mining", "miner", "hashrate"),
    "adoption": ("adoption", "institutional", "inflows"),
    "exchange": ("binance", "coinbase", "kraken", "okx"),
    "defi": ("defi", "decentralized finance", "yield"),
    "rates": ("interest rate", "rate cut", "rate hike", "fomc"),
    "inflation": ("inflation", "cpi", "consumer price"),
}


@dataclass
class PatternTopic:
    """Topic definition with compiled regex patterns."""

    id: str
    patterns: list[re.Pattern]
    pattern_type: PatternType
    impact: dict[str, float] = field(default_factory=dict)


def _topic(
    topic_id: str,
    expressions: list[str],
    pattern_type: PatternType,
    **impact: float,
) -> PatternTopic:
    return PatternTopic(
        id=topic_id,
        patterns=[re.compile(p, re.IGNORECASE) for p in expressions],
        pattern_type=pattern_type,
        impact=impact,
    )


# Pattern topics matched against title and description
PATTERN_TOPICS: list[PatternTopic] = [
    _topic(
        "tariffs",
        [r"tariff", r"trade war", r"import tax", r"customs duty"],
        PatternType.ECONOMIC_INDICATOR,
        market=50,
        economic=60,
        geopolitical=30,
    ),
    _topic(
        "fed-rates",
        [r"federal reserve", r"interest rate", r"rate cut", r"rate hike", r"\bfomc\b"],
        PatternType.ECONOMIC_INDICATOR,
        market=60,
        economic=50,
    ),
    _topic(
        "inflation",
        [r"inflation", r"\bcpi\b", r"consumer price", r"cost of living"],
        PatternType.ECONOMIC_INDICATOR,
        market=40,
        economic=60,
        social=30,
    ),
    _topic(
        "recession",
        [r"recession", r"economic downturn", r"gdp.*decline", r"economic.*crisis"],
        PatternType.MARKET_CORRECTION,
        market=70,
        economic=80,
        social=40,
    ),
    _topic(
        "bank-crisis",
        [r"bank.*fail", r"banking crisis", r"\bfdic\b", r"bank run", r"bank.*collapse"],
        PatternType.MARKET_CORRECTION,
        market=80,
        economic=70,
    ),
    _topic(
        "crypto-etf",
        [r"\betf\b.*(bitcoin|ether|crypto)", r"(bitcoin|ether|crypto).*\betf\b"],
        PatternType.REGULATORY_CHANGE,
        market=60,
        economic=20,
    ),
    _topic(
        "crypto-regulation",
        [r"crypto.*regulation", r"\bsec\b.*crypto", r"crypto.*crackdown", r"stablecoin.*bill"],
        PatternType.REGULATORY_CHANGE,
        market=50,
        economic=20,
    ),
    _topic(
        "ai-regulation",
        [r"ai regulation", r"artificial intelligence.*law", r"ai safety", r"ai governance"],
        PatternType.REGULATORY_CHANGE,
        market=20,
        social=30,
    ),
    _topic(
        "ai-breakthrough",
        [r"gpt-?5", r"\bagi\b", r"artificial general", r"ai breakthrough", r"llm.*advance"],
        PatternType.TECHNOLOGICAL_BREAKTHROUGH,
        market=40,
        economic=30,
        social=30,
    ),
    _topic(
        "tech-breakthrough",
        [r"breakthrough", r"game.?changer", r"quantum comput"],
        PatternType.TECHNOLOGICAL_BREAKTHROUGH,
        market=30,
        economic=20,
    ),
    _topic(
        "china-tensions",
        [r"china.*taiwan", r"south china sea", r"\bus\b.*china", r"beijing.*washington"],
        PatternType.GEOPOLITICAL_TENSION,
        market=40,
        geopolitical=80,
        economic=40,
    ),
    _topic(
        "russia-ukraine",
        [r"ukraine", r"zelensky", r"putin.*war", r"crimea", r"donbas", r"kyiv"],
        PatternType.GEOPOLITICAL_TENSION,
        market=30,
        geopolitical=90,
        economic=30,
    ),
    _topic(
        "middle-east",
        [r"gaza", r"hamas", r"netanyahu", r"israel.*attack", r"tehran", r"\birgc\b", r"houthi"],
        PatternType.GEOPOLITICAL_TENSION,
        market=40,
        geopolitical=90,
        social=40,
    ),
    _topic(
        "north-korea",
        [r"north korea", r"pyongyang", r"kim jong", r"\bdprk\b"],
        PatternType.GEOPOLITICAL_TENSION,
        geopolitical=70,
    ),
    _topic(
        "oil-energy",
        [r"oil price", r"\bopec\b", r"energy crisis", r"gas price", r"petroleum"],
        PatternType.ECONOMIC_INDICATOR,
        market=60,
        economic=60,
        geopolitical=30,
    ),
    _topic(
        "cybersecurity",
        [r"cyber.*attack", r"ransomware", r"data breach", r"hack.*(exchange|government)", r"exploit"],
        PatternType.GEOPOLITICAL_TENSION,
        market=30,
        geopolitical=40,
        social=20,
    ),
    _topic(
        "unrest",
        [r"protest", r"riot", r"civil unrest", r"general strike", r"martial law", r"\bcoup\b"],
        PatternType.SOCIAL_UNREST,
        geopolitical=50,
        social=80,
    ),
    _topic(
        "layoffs",
        [r"layoff", r"job cut", r"workforce reduction", r"downsizing"],
        PatternType.ECONOMIC_INDICATOR,
        market=20,
        economic=40,
        social=50,
    ),
]


@dataclass(frozen=True)
class EntityDefinition:
    """Named entity tracked by the main character analyzer."""

    name: str
    type: str  # 'person' | 'organization' | 'country' | 'company'
    aliases: tuple[str, ...]
    related_assets: tuple[str, ...] = ()


ENTITIES: tuple[EntityDefinition, ...] = (
    # People
    EntityDefinition("Jerome Powell", "person", ("jerome powell", "powell"), ("SPY",)),
    EntityDefinition("Donald Trump", "person", ("donald trump", "trump")),
    EntityDefinition("Vladimir Putin", "person", ("vladimir putin", "putin")),
    EntityDefinition("Xi Jinping", "person", ("xi jinping",)),
    EntityDefinition("Volodymyr Zelensky", "person", ("zelensky", "zelenskyy")),
    EntityDefinition("Benjamin Netanyahu", "person", ("netanyahu",)),
    EntityDefinition("Elon Musk", "person", ("elon musk", "musk"), ("DOGE",)),
    EntityDefinition("Christine Lagarde", "person", ("lagarde",)),
    EntityDefinition("Sam Altman", "person", ("sam altman", "altman")),
    # Organizations
    EntityDefinition(
        "Federal Reserve", "organization", ("federal reserve", "the fed", "fomc"), ("SPY",)
    ),
    EntityDefinition(
        "SEC", "organization", ("sec", "securities and exchange commission"), ("BTC", "ETH")
    ),
    EntityDefinition("European Central Bank", "organization", ("ecb", "european central bank")),
    EntityDefinition("OPEC", "organization", ("opec",), ("USO",)),
    EntityDefinition("NATO", "organization", ("nato",)),
    EntityDefinition("IMF", "organization", ("imf", "international monetary fund")),
    EntityDefinition("United Nations", "organization", ("united nations",)),
    # Companies
    EntityDefinition("BlackRock", "company", ("blackrock",), ("BTC",)),
    EntityDefinition("Binance", "company", ("binance",), ("BTC",)),
    EntityDefinition("Coinbase", "company", ("coinbase",), ("BTC", "ETH")),
    EntityDefinition("Nvidia", "company", ("nvidia",), ("QQQ",)),
    EntityDefinition("Apple", "company", ("apple",), ("QQQ",)),
    EntityDefinition("Microsoft", "company", ("microsoft",), ("QQQ",)),
    EntityDefinition("OpenAI", "company", ("openai",)),
    EntityDefinition("Tesla", "company", ("tesla",), ("QQQ",)),
    # Countries
    EntityDefinition("United States", "country", ("united states", "u.s.", "usa")),
    EntityDefinition("China", "country", ("china", "beijing")),
    EntityDefinition("Russia", "country", ("russia", "moscow", "kremlin")),
    EntityDefinition("Ukraine", "country", ("ukraine", "kyiv")),
    EntityDefinition("Iran", "country", ("iran", "tehran"), ("USO",)),
    EntityDefinition("Israel", "country", ("israel",)),
    EntityDefinition("Taiwan", "country", ("taiwan",)),
    EntityDefinition("North Korea", "country", ("north korea", "pyongyang")),
)

# Word valences for the lexicon sentiment score
SENTIMENT_LEXICON: dict[str, float] = {
    "surge": 2.0,
    "surges": 2.0,
    "soar": 2.5,
    "soars": 2.5,
    "rally": 2.0,
    "rallies": 2.0,
    "gain": 1.5,
    "gains": 1.5,
    "jump": 1.5,
    "jumps": 1.5,
    "record": 1.5,
    "breaks": 1.0,
    "inflows": 1.5,
    "approval": 1.5,
    "approved": 1.5,
    "growth": 1.5,
    "beat": 1.5,
    "beats": 1.5,
    "strong": 1.0,
    "optimism": 2.0,
    "recovery": 1.5,
    "rebound": 1.5,
    "upgrade": 1.5,
    "breakthrough": 2.0,
    "agreement": 1.0,
    "deal": 1.0,
    "ceasefire": 1.5,
    "peace": 2.0,
    "plunge": -2.5,
    "plunges": -2.5,
    "crash": -3.0,
    "crashes": -3.0,
    "tumble": -2.0,
    "tumbles": -2.0,
    "slump": -2.0,
    "drop": -1.5,
    "drops": -1.5,
    "fall": -1.5,
    "falls": -1.5,
    "decline": -1.5,
    "declines": -1.5,
    "loss": -1.5,
    "losses": -1.5,
    "outflows": -1.5,
    "fear": -2.0,
    "fears": -2.0,
    "panic": -2.5,
    "selloff": -2.0,
    "sell-off": -2.0,
    "downgrade": -1.5,
    "weak": -1.0,
    "war": -2.5,
    "attack": -2.5,
    "crisis": -2.5,
    "sanctions": -1.5,
    "hack": -2.0,
    "hacked": -2.0,
    "default": -2.5,
    "bankruptcy": -3.0,
    "collapse": -3.0,
    "lawsuit": -1.0,
    "ban": -1.5,
    "recession": -2.0,
    "layoffs": -1.5,
}

NEGATIONS: frozenset[str] = frozenset(
    {"not", "no", "never", "without", "isn't", "wasn't", "won't", "don't", "doesn't"}
)

# VADER normalization constant
NORMALIZATION_ALPHA = 15.0


# ── Keyword matching helpers ─────────────────────────────────────────────────


SHORT_TERM_LENGTH = 3


def term_expression(term: str) -> str:
    """
    Regex source for a dictionary term.

    Terms prefixed with ``re:`` are used verbatim, anything else matches as a
    whole word with an optional plural/tense suffix. Terms of three letters or
    fewer only take a plural ``s``, so "ai" never matches "aid" and "war"
    never matches "ward".
    """
    if term.startswith("re:"):
        return term[3:]
    word = re.escape(term.lower())
    suffix = "s?" if len(term) <= SHORT_TERM_LENGTH else "(?:s|es|ed|d|ing)?"
    return rf"(?<!\w){word}{suffix}(?!\w)"


@lru_cache(maxsize=4096)
def compile_term(term: str) -> re.Pattern:
    return re.compile(term_expression(term), re.IGNORECASE)


def compile_terms(terms: tuple[str, ...] | list[str]) -> re.Pattern | None:
    """Single alternation pattern over many terms, None for an empty list."""
    if not terms:
        return None
    return re.compile(
        "|".join(f"(?:{term_expression(t)})" for t in terms), re.IGNORECASE
    )


def matching_terms(text: str, terms: tuple[str, ...] | list[str]) -> list[str]:
    """Return the terms found in text, in table order."""
    return [t for t in terms if compile_term(t).search(text)]


def detect_region(text: str) -> Region | None:
    """Detect region from text using the default table."""
    for region, keywords in REGION_KEYWORDS.items():
        if matching_terms(text, keywords):
            return region
    return None


def asset_aliases(symbol: str, name: str = "") -> tuple[str, ...]:
    """Aliases a news item may use to mention an asset."""
    aliases = [symbol.lower()]
    aliases.extend(ASSET_KEYWORDS.get(symbol.upper(), ()))
    if name:
        aliases.append(name.lower())
    return tuple(dict.fromkeys(aliases))


def mentions_asset(text: str, symbol: str, name: str = "") -> bool:
    return bool(matching_terms(text, asset_aliases(symbol, name)))


# ── Thresholds ───────────────────────────────────────────────────────────────


def _default_tiers() -> dict[AlertLevel, list[str]]:
    return {level: list(terms) for level, terms in ALERT_KEYWORDS.items()}


def _default_categories() -> dict[NewsCategory, list[str]]:
    return {cat: list(terms) for cat, terms in CATEGORY_KEYWORDS.items()}


def _default_regions() -> dict[Region, list[str]]:
    return {region: list(terms) for region, terms in REGION_KEYWORDS.items()}


class ClassifierConfig(BaseModel):
    alert_keywords: dict[AlertLevel, list[str]] = Field(default_factory=_default_tiers)
    category_keywords: dict[NewsCategory, list[str]] = Field(
        default_factory=_default_categories
    )
    region_keywords: dict[Region, list[str]] = Field(default_factory=_default_regions)


class PatternConfig(BaseModel):
    enabled: bool = True
    min_confidence: float = 30
    min_mentions: int = 2
    price_action_percent: float = 5.0
    correction_percent: float = 2.0
    correction_share: float = 0.6
    sentiment_threshold: float = 0.35
    volume_spike_ratio: float = 2.0


class TrendConfig(BaseModel):
    enabled: bool = True
    min_confidence: float = 30
    trend_percent: float = 1.0
    breakout_percent: float = 5.0
    volatile_range_percent: float = 8.0
    min_region_items: int = 2
    rsi_period: int = 14


class RiskConfig(BaseModel):
    enabled: bool = True
    min_confidence: float = 30
    min_probability: float = 20
    min_impact: float = 20
    critical_score: float = 60
    high_score: float = 40
    medium_score: float = 20
    decline_percent: float = 5.0


class OpportunityConfig(BaseModel):
    enabled: bool = True
    min_confidence: float = 30
    momentum_percent: float = 3.0
    oversold_percent: float = -7.0
    grid_min_volatility: float = 2.0
    grid_max_volatility: float = 8.0
    grid_levels: int = Field(default=10, ge=1)


class CorrelationConfig(BaseModel):
    enabled: bool = True
    assets: list[str] | None = None
    min_correlation: float = 0.5
    min_samples: int = 5


class NarrativeConfig(BaseModel):
    enabled: bool = True
    min_strength: float = 30
    max_narratives: int = 10
    min_items: int = 2
    window_hours: float = 72
    similarity_threshold: float = 0.5
    half_life_hours: float = 24


class CharacterConfig(BaseModel):
    enabled: bool = True
    min_influence: float = 20
    max_characters: int = 10


class DecisionConfig(BaseModel):
    min_confidence: float = 30
    max_decisions: int = 20
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "trend": 0.4,
            "pattern": 0.3,
            "risk": 0.2,
            "opportunity": 0.1,
        }
    )


class MonitorConfig(BaseModel):
    default_threshold: float = Field(default=0.7, ge=0, le=1)
    default_check_interval: int = 3600
    enforce_check_interval: bool = False


class AnalysisConfig(BaseModel):
    """Every tunable threshold of the engine; missing keys keep their defaults."""

    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    trends: TrendConfig = Field(default_factory=TrendConfig)
    risks: RiskConfig = Field(default_factory=RiskConfig)
    opportunities: OpportunityConfig = Field(default_factory=OpportunityConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    narratives: NarrativeConfig = Field(default_factory=NarrativeConfig)
    characters: CharacterConfig = Field(default_factory=CharacterConfig)
    decisions: DecisionConfig = Field(default_factory=DecisionConfig)
    monitoring: MonitorConfig = Field(default_factory=MonitorConfig)
    cache_ttl_seconds: int = 300


def load_analysis_config(path: str | Path | None) -> AnalysisConfig:
    """Load overrides from a JSON file, falling back to defaults."""
    if not path:
        return AnalysisConfig()

    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Analysis config not found: {config_path}, using defaults")
        return AnalysisConfig()

    with open(config_path) as f:
        overrides = json.load(f)

    config = AnalysisConfig.model_validate(overrides)
    logger.info(f"Loaded analysis config overrides from {config_path}")
    return config
