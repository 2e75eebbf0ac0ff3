"""
News adapters for NewsAPI, Currents and Google News RSS
NewsAPI is primary and enforces a cooldown once it reports throttling
"""

import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from ..utils import LogThrottle, RateLimitCooldown, get_logger
from .base import Article, DataProvider, HTTPAdapter, NewsAdapter, NewsOptions, ProviderError

logger = get_logger(__name__)

NEWSAPI_URL = "https://newsapi.org/v2/everything"
CURRENTS_URL = "https://api.currentsapi.services/v1/search"
GOOGLE_NEWS_RSS_URL = "https://news.google.com/rss/search"
RSS2JSON_URL = "https://api.rss2json.com/v1/api.json"

RATE_LIMIT_MARKERS = ("too many requests", "rate", "limit")


def parse_published(value: Any) -> Optional[datetime]:
    """Parse the assorted publish-time formats vendors use into aware UTC datetimes"""
    if not value:
        return None

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S %z")
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_rate_limit_message(message: str) -> bool:
    lower = (message or "").lower()
    return any(marker in lower for marker in RATE_LIMIT_MARKERS)


def article_from_newsapi(article: Dict[str, Any]) -> Article:
    return Article(
        title=article.get("title") or "",
        description=article.get("description") or "",
        url=article.get("url") or "",
        published_at=parse_published(article.get("publishedAt")),
        source=(article.get("source") or {}).get("name") or "Unknown",
        content=article.get("content") or ""
    )


def article_from_currents(article: Dict[str, Any]) -> Article:
    return Article(
        title=article.get("title") or "",
        description=article.get("description") or "",
        url=article.get("url") or "",
        published_at=parse_published(article.get("published")),
        source=article.get("author") or "Unknown",
        content=article.get("description") or ""
    )


def article_from_rss_item(item: Dict[str, Any], feed_title: Optional[str] = None) -> Article:
    return Article(
        title=item.get("title") or "",
        description=item.get("description") or "",
        url=item.get("link") or item.get("url") or "",
        published_at=parse_published(item.get("pubDate")),
        source=feed_title or "Google News",
        content=item.get("content") or ""
    )


class NewsAPIAdapter(HTTPAdapter, NewsAdapter):
    """
    NewsAPI.org adapter

    Throttling (HTTP 429 or a message mentioning rate/limit) starts a
    cooldown; until it expires get_news() returns [] without touching the
    network. Transport failures and other error statuses raise ProviderError.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        super().__init__(DataProvider.NEWSAPI, client)
        self._api_key = api_key
        self.cooldown = RateLimitCooldown(
            provider=self.name,
            duration_seconds=self.config.news.rate_limit_cooldown_hours * 3600,
            clock=clock
        )
        self._warn_throttle = LogThrottle(self.config.news.warn_interval_seconds, clock=clock)

    @property
    def api_key(self) -> str:
        return self._api_key or self.config.api.news_api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def is_rate_limited(self) -> bool:
        return self.cooldown.is_active

    async def get_news(self, query: str, options: NewsOptions) -> List[Article]:
        if self.cooldown.is_active:
            logger.debug(f"NewsAPI cooling down, skipping '{query}'")
            return []

        if not self.is_configured:
            raise ProviderError(self.name, "NEWS_API_KEY not set")

        response, data = await self._get_json(
            NEWSAPI_URL,
            params={
                "q": query,
                "apiKey": self.api_key,
                "sortBy": options.sort_by,
                "pageSize": options.page_size,
                "language": options.language
            },
            allow_error_status=True
        )

        if response.status_code == 429:
            self.cooldown.trip()
            return []

        if not isinstance(data, dict):
            if response.status_code >= 400:
                raise ProviderError(self.name, f"HTTP {response.status_code}")
            raise ProviderError(self.name, "unexpected payload")

        if data.get("status") != "ok":
            message = str(data.get("message") or "")
            if is_rate_limit_message(message):
                self.cooldown.trip()
                return []
            if response.status_code >= 400:
                raise ProviderError(self.name, f"HTTP {response.status_code}: {message}")
            if self._warn_throttle.ready():
                logger.warning(f"NewsAPI response not ok: {message or data}")
            return []

        return [
            article_from_newsapi(article)
            for article in data.get("articles") or []
            if article.get("title")
        ]


class CurrentsAdapter(HTTPAdapter, NewsAdapter):
    """Currents API adapter; degrades to an empty list on any failure"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None):
        super().__init__(DataProvider.CURRENTS, client)
        self._api_key = api_key

    @property
    def api_key(self) -> str:
        return self._api_key or self.config.api.currents_api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def get_news(self, query: str, options: NewsOptions) -> List[Article]:
        if not self.is_configured:
            logger.debug("CURRENTS_API_KEY not set, skipping Currents")
            return []

        try:
            _, data = await self._get_json(CURRENTS_URL, params={
                "keywords": query,
                "apiKey": self.api_key,
                "language": options.language,
                "page_size": options.page_size
            })
        except ProviderError as e:
            logger.warning(f"Currents API error: {e}")
            return []

        if not isinstance(data, dict) or data.get("status") != "ok":
            message = data.get("message") if isinstance(data, dict) else data
            logger.warning(f"Currents API response not ok: {message}")
            return []

        return [
            article_from_currents(article)
            for article in data.get("news") or []
            if article.get("title")
        ]


class GoogleNewsRSSAdapter(HTTPAdapter, NewsAdapter):
    """
    Google News RSS through the rss2json proxy
    Keyless last resort; degrades to an empty list on any failure
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__(DataProvider.GOOGLE_NEWS_RSS, client)

    def build_feed_url(self, query: str, options: NewsOptions) -> str:
        language = options.language or self.config.news.language
        region = (options.region or self.config.news.region).upper()
        params = {
            "q": query,
            "hl": f"{language}-{region}",
            "gl": region,
            "ceid": f"{region}:{language}"
        }
        return f"{GOOGLE_NEWS_RSS_URL}?{urlencode(params)}"

    async def get_news(self, query: str, options: NewsOptions) -> List[Article]:
        try:
            _, data = await self._get_json(RSS2JSON_URL, params={
                "rss_url": self.build_feed_url(query, options)
            })
        except ProviderError as e:
            logger.warning(f"Google News RSS error: {e}")
            return []

        if not isinstance(data, dict):
            return []

        feed_title = (data.get("feed") or {}).get("title")
        items = data.get("items") if isinstance(data.get("items"), list) else []
        articles = [article_from_rss_item(item, feed_title) for item in items]
        articles = [a for a in articles if a.title and a.url]
        return articles[:options.page_size]
