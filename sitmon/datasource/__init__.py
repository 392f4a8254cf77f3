"""
News and market data sources.
"""

from sitmon.datasource.base import BaseDataSource, MarketSource, NewsSource
from sitmon.datasource.coingecko import CoinGeckoMarketSource
from sitmon.datasource.rss import RSSFeedConfig, RSSNewsSource, load_feed_configs
from sitmon.datasource.static import (
    StaticMarketSource,
    StaticNewsSource,
    load_batch_file,
    sources_from_file,
)

__all__ = [
    "BaseDataSource",
    "NewsSource",
    "MarketSource",
    "RSSFeedConfig",
    "RSSNewsSource",
    "load_feed_configs",
    "CoinGeckoMarketSource",
    "StaticNewsSource",
    "StaticMarketSource",
    "load_batch_file",
    "sources_from_file",
]
