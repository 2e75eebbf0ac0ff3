"""
News manager with fallback and deduplication
Prefers NewsAPI, falls back to Currents and then Google News RSS
"""

import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..config import get_config
from ..utils import LogThrottle, get_logger
from .base import Article, NewsOptions
from .cache import TTLCache
from .news import CurrentsAdapter, GoogleNewsRSSAdapter, NewsAPIAdapter

logger = get_logger(__name__)

STOCK_QUERY_SUFFIXES = ("", " stock", " price", " market", " trading")
STOCK_NEWS_LIMIT = 20

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def sort_and_deduplicate(articles: List[Article], limit: Optional[int] = None) -> List[Article]:
    """
    Newest first, dropping any article whose exact title was already kept
    Titles are compared case-sensitively with no normalization
    """
    ordered = sorted(articles, key=lambda a: a.published_at or _OLDEST, reverse=True)

    unique: List[Article] = []
    seen_titles = set()
    for article in ordered:
        if article.title in seen_titles:
            continue
        seen_titles.add(article.title)
        unique.append(article)

    return unique[:limit] if limit is not None else unique


class NewsManager:
    """
    News acquisition that never raises to its caller

    get_news() tries NewsAPI first. If NewsAPI raises, or returns nothing
    while it is in its rate-limit cooldown, Currents is tried and then the
    keyless RSS feed. The worst case is an empty list.
    """

    def __init__(
        self,
        newsapi: Optional[NewsAPIAdapter] = None,
        currents: Optional[CurrentsAdapter] = None,
        rss: Optional[GoogleNewsRSSAdapter] = None,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], float] = time.time
    ):
        self.config = get_config()
        self.newsapi = newsapi or NewsAPIAdapter(clock=clock)
        self.currents = currents or CurrentsAdapter()
        self.rss = rss or GoogleNewsRSSAdapter()

        self.cache = cache or TTLCache(
            max_size=self.config.cache.news_max_entries,
            ttl_seconds=self.config.cache.news_ttl_seconds,
            clock=clock,
            name="news"
        )
        self._warn_throttle = LogThrottle(self.config.news.warn_interval_seconds, clock=clock)

    async def initialize(self):
        """Initialize news adapters"""
        logger.info("Initializing news manager...")
        for adapter in (self.newsapi, self.currents, self.rss):
            try:
                await adapter.connect()
            except Exception as e:
                logger.error(f"Failed to connect {adapter.name}: {e}")

    async def shutdown(self):
        """Shutdown news adapters"""
        for adapter in (self.newsapi, self.currents, self.rss):
            try:
                await adapter.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting {adapter.name}: {e}")

    def default_options(self, **overrides) -> NewsOptions:
        values = {
            "language": self.config.news.language,
            "region": self.config.news.region
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return NewsOptions(**values)

    async def get_news(self, query: str, options: Optional[NewsOptions] = None) -> List[Article]:
        """Articles for a query, most recent first as the provider returned them"""
        options = options or self.default_options()
        cache_key = options.cache_key(query)

        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            articles = await self.newsapi.get_news(query, options)
            if not articles and self.newsapi.is_rate_limited():
                articles = await self._fallback(query, options)
        except Exception as e:
            if self._warn_throttle.ready():
                logger.warning(f"NewsAPI failed, trying fallbacks: {e}")
            articles = await self._fallback(query, options)

        # Empty results are not cached so the next call retries the providers
        if articles:
            self.cache.put(cache_key, list(articles))
        return articles

    async def _fallback(self, query: str, options: NewsOptions) -> List[Article]:
        try:
            articles = await self.currents.get_news(query, options)
        except Exception as e:
            logger.warning(f"Currents failed for '{query}': {e}")
            articles = []

        if articles:
            return articles

        try:
            return await self.rss.get_news(query, options)
        except Exception as e:
            logger.warning(f"Google News RSS failed for '{query}': {e}")
            return []

    async def search_for_stock_news(self, symbol: str) -> List[Article]:
        """
        Up to 20 unique articles about a ticker, newest first

        Query variants run one after another so a throttled NewsAPI is only
        asked once before its cooldown kicks in.
        """
        options = self.default_options(sort_by="publishedAt", page_size=10)

        collected: List[Article] = []
        for suffix in STOCK_QUERY_SUFFIXES:
            query = f"{symbol}{suffix}"
            try:
                collected.extend(await self.get_news(query, options))
            except Exception as e:
                logger.warning(f"News search failed for query '{query}': {e}")

        return sort_and_deduplicate(collected, STOCK_NEWS_LIMIT)

    def get_cache_stats(self) -> dict:
        return self.cache.get_stats()
