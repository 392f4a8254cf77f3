"""
sitmon主入口
集成数据源获取、分析引擎、关键词监控和定时调度
"""

import asyncio
import sys
from datetime import timedelta

from loguru import logger

from sitmon.analysis.config import load_analysis_config
from sitmon.analysis.engine import AnalysisEngine
from sitmon.datasource import (
    CoinGeckoMarketSource,
    RSSNewsSource,
    load_feed_configs,
    sources_from_file,
)
from sitmon.datastore.engine import Datastore
from sitmon.monitors.registry import MonitorRegistry
from sitmon.monitors.store import SqlMonitorStore
from sitmon.scheduler import AnalysisScheduler
from sitmon.service import SituationService
from sitmon.services.cache import CacheManager
from sitmon.settings import Settings


def build_sources(settings: Settings) -> tuple[list, list]:
    if settings.batch_path:
        news, market = sources_from_file(settings.batch_path)
        return [news], [market]

    news_sources = [
        RSSNewsSource(
            feeds=load_feed_configs(settings.rss_config_path),
            timeout=settings.rss_request_timeout,
            max_retries=settings.rss_max_retries,
        )
    ]
    market_sources = []
    if settings.coingecko_enabled:
        market_sources.append(
            CoinGeckoMarketSource(
                history_days=settings.coingecko_history_days,
                timeout=settings.fetch_timeout_seconds,
            )
        )
    return news_sources, market_sources


async def main() -> None:
    """主函数"""
    settings = Settings.from_env()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())
    logger.info("Starting sitmon...")

    config = load_analysis_config(settings.analysis_config_path)
    ttl = settings.cache_ttl_seconds or config.cache_ttl_seconds
    cache = CacheManager(default_ttl=timedelta(seconds=ttl))
    datastore = Datastore(settings.database_url, echo=settings.database_echo)
    scheduler: AnalysisScheduler | None = None

    try:
        # 初始化数据库
        logger.info("Initializing database...")
        await datastore.init()

        registry = MonitorRegistry(SqlMonitorStore(datastore.session_factory), config.monitoring)
        await registry.load()

        news_sources, market_sources = build_sources(settings)
        service = SituationService(
            engine=AnalysisEngine(config, cache=cache),
            registry=registry,
            news_sources=news_sources,
            market_sources=market_sources,
            fetch_timeout=settings.fetch_timeout_seconds,
        )

        scheduler = AnalysisScheduler(
            service,
            analysis_interval_minutes=settings.analysis_interval_minutes,
            monitor_interval_minutes=settings.monitor_interval_minutes,
        )
        scheduler.start()

        # 执行第一次分析
        logger.info("Performing initial analysis...")
        await scheduler.run_now()

        # 保持程序运行
        logger.info("sitmon is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        if scheduler is not None and scheduler.is_running():
            scheduler.stop()

        await cache.clear()

        logger.info("Closing database connections...")
        await datastore.close()

        logger.info("sitmon stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
