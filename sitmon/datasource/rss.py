"""
RSS数据源获取模块
负责从配置的RSS源获取文章、解析内容并转换为待分类的新闻条目
"""

import asyncio
import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import feedparser
import httpx
from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from loguru import logger
from pydantic import BaseModel, HttpUrl

from sitmon.analysis.types import NewsCategory, RawNewsItem, Region, utcnow
from sitmon.datasource.base import NewsSource


class RSSFeedConfig(BaseModel):
    """RSS源配置模型"""

    name: str
    description: str = ""
    category: NewsCategory | None = None
    region: Region | None = None
    url: HttpUrl
    source: str = ""


def load_feed_configs(config_path: str | Path) -> list[RSSFeedConfig]:
    """加载RSS配置，文件缺失或格式错误时返回空列表"""
    config_path = Path(config_path)
    try:
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}")
            return []

        with open(config_path) as f:
            data = json.load(f)

        # 过滤掉空配置
        valid_rss = [
            rss for rss in data.get("rss", []) if rss.get("name") and rss.get("url")
        ]
        feeds = [RSSFeedConfig(**feed) for feed in valid_rss]
        logger.info(f"Loaded {len(feeds)} RSS feeds from config")
        return feeds
    except Exception as e:
        logger.error(f"Failed to load RSS config: {e}")
        return []


def clean_html_content(html: str) -> str:
    """清洗HTML内容，提取纯文本"""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    # 移除script和style标签
    for script in soup(["script", "style"]):
        script.decompose()

    text = soup.get_text(separator=" ")
    return " ".join(text.split())


def parse_date(date_str: str | None) -> datetime:
    """解析日期字符串，返回naive UTC时间"""
    if not date_str:
        return utcnow()

    try:
        dt = date_parser.parse(date_str)
    except (ValueError, OverflowError):
        # 解析失败，使用当前时间
        return utcnow()

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


class RSSNewsSource(NewsSource):
    """并发抓取所有配置的RSS源"""

    SERVICE_ID = "rss"

    def __init__(
        self,
        feeds: list[RSSFeedConfig] | None = None,
        config_path: str | Path | None = None,
        timeout: float = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ):
        if feeds is None:
            feeds = load_feed_configs(config_path) if config_path else []
        self.feeds = feeds
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = client

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    def is_configured(self) -> bool:
        return bool(self.feeds)

    def parse_entries(self, entries: list[Any], feed: RSSFeedConfig) -> list[RawNewsItem]:
        """解析feed条目为新闻条目"""
        items = []

        for entry in entries:
            title = entry.get("title", "").strip()
            link = entry.get("link", "")
            if not title or not link:
                logger.debug(f"Skipping entry without title or link in {feed.name}")
                continue

            summary = clean_html_content(entry.get("summary", ""))[:1000]

            published_str = entry.get("published") or entry.get("updated")

            # 生成唯一标识符
            guid = entry.get("id") or link
            item_id = hashlib.md5(guid.encode()).hexdigest()[:12]

            items.append(
                RawNewsItem(
                    id=item_id,
                    title=title,
                    description=summary,
                    url=link,
                    source=feed.source or feed.name,
                    published_at=parse_date(published_str),
                    category=feed.category,
                    region=feed.region,
                )
            )

        return items

    async def fetch_feed_with_retry(
        self, client: httpx.AsyncClient, feed: RSSFeedConfig
    ) -> list[RawNewsItem]:
        """带重试机制的RSS获取"""
        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching RSS feed: {feed.name} (attempt {attempt + 1}/{self.max_retries})"
                )
                response = await client.get(str(feed.url))
                response.raise_for_status()

                parsed = feedparser.parse(response.content)
                if parsed.bozo:
                    logger.warning(
                        f"Feed parsing warning for {feed.name}: {parsed.bozo_exception}"
                    )

                items = self.parse_entries(parsed.entries, feed)
                logger.info(f"Successfully fetched {len(items)} items from {feed.name}")
                return items

            except httpx.TimeoutException:
                logger.warning(
                    f"Timeout fetching {feed.name} (attempt {attempt + 1}/{self.max_retries})"
                )
            except httpx.HTTPStatusError as e:
                logger.error(f"HTTP error fetching {feed.name}: {e.response.status_code}")
            except httpx.HTTPError as e:
                logger.error(f"Error fetching {feed.name}: {e}")

            if attempt < self.max_retries - 1:
                # 指数退避
                await asyncio.sleep(self.retry_delay * 2**attempt)

        logger.error(f"Failed to fetch {feed.name} after {self.max_retries} attempts")
        return []

    async def fetch(self) -> list[RawNewsItem]:
        if not self.feeds:
            logger.warning("No RSS feeds configured")
            return []

        if self._client is not None:
            results = await asyncio.gather(
                *(self.fetch_feed_with_retry(self._client, feed) for feed in self.feeds)
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                results = await asyncio.gather(
                    *(self.fetch_feed_with_retry(client, feed) for feed in self.feeds)
                )

        items = [item for feed_items in results for item in feed_items]
        logger.info(f"RSS fetch completed: {len(items)} items from {len(self.feeds)} feeds")
        return items
