"""
Situation analysis: classification, the seven analyzers and decision fusion.
"""

from sitmon.analysis.classifier import Classifier
from sitmon.analysis.config import AnalysisConfig, load_analysis_config
from sitmon.analysis.decisions import DecisionEngine
from sitmon.analysis.engine import AnalysisEngine
from sitmon.analysis.types import (
    Alert,
    AlertLevel,
    AnalysisBatch,
    AnalysisResult,
    MarketQuote,
    Monitor,
    NewsItem,
    PricePoint,
    RawNewsItem,
)

__all__ = [
    # Types
    "Alert",
    "AlertLevel",
    "AnalysisBatch",
    "AnalysisResult",
    "MarketQuote",
    "Monitor",
    "NewsItem",
    "PricePoint",
    "RawNewsItem",
    # Engine
    "AnalysisEngine",
    "Classifier",
    "DecisionEngine",
    # Config
    "AnalysisConfig",
    "load_analysis_config",
]
