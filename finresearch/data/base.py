"""
Base classes and normalized records for data adapters
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple
from enum import Enum

import httpx

from ..config import get_config


class DataProvider(Enum):
    """Available data providers"""
    ALPHA_VANTAGE = "alpha_vantage"
    YAHOO = "yahoo_finance"
    FINNHUB = "finnhub"
    NEWSAPI = "newsapi"
    CURRENTS = "currents"
    GOOGLE_NEWS_RSS = "google_news_rss"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Quote:
    """Normalized stock snapshot, produced by exactly one provider"""
    symbol: str
    price: float
    source: str
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[int] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'price': self.price,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'volume': self.volume,
            'change': self.change,
            'change_percent': self.change_percent,
            'timestamp': self.timestamp.isoformat(),
            'source': self.source
        }


@dataclass(frozen=True)
class QuoteError:
    """Error marker stored in batch quote results"""
    symbol: str
    error: str


@dataclass(frozen=True)
class Bar:
    """OHLCV bar data"""
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass(frozen=True)
class Article:
    """Normalized news item"""
    title: str
    url: str
    source: str
    description: str = ""
    content: str = ""
    published_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'description': self.description,
            'url': self.url,
            'published_at': self.published_at.isoformat() if self.published_at else None,
            'source': self.source,
            'content': self.content
        }


@dataclass(frozen=True)
class NewsOptions:
    """Query options shared by all news providers"""
    sort_by: str = "publishedAt"
    page_size: int = 10
    language: str = "en"
    region: Optional[str] = None

    def cache_key(self, query: str) -> str:
        return (
            f"news_{query}_{self.sort_by}_{self.page_size}_"
            f"{self.language}_{self.region or ''}"
        )


class ProviderError(Exception):
    """Transient provider failure (network, non-2xx, malformed payload)"""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class RateLimitedError(ProviderError):
    """Provider signalled that we are being throttled"""


class AllProvidersFailedError(Exception):
    """Every provider in a fallback chain failed for the same key"""

    def __init__(self, key: str, attempts: Sequence[Tuple[str, Exception]]):
        self.key = key
        self.attempts = list(attempts)
        detail = f": {self.last_error}" if self.last_error else ""
        super().__init__(f"Unable to fetch data for {key}{detail}")

    @property
    def last_error(self) -> Optional[Exception]:
        if not self.attempts:
            return None
        return self.attempts[-1][1]


class BaseAdapter(ABC):
    """Base class for all data adapters"""

    def __init__(self, provider: DataProvider):
        self.provider = provider
        self.config = get_config()
        self.is_connected = False

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    def is_configured(self) -> bool:
        """Whether the adapter has the credentials it needs"""
        return True

    @abstractmethod
    async def connect(self):
        """Establish connection to data source"""
        pass

    @abstractmethod
    async def disconnect(self):
        """Close connection to data source"""
        pass


class HTTPAdapter(BaseAdapter):
    """
    Adapter backed by an httpx.AsyncClient
    The client is created on connect() unless one is injected
    """

    def __init__(self, provider: DataProvider, client: Optional[httpx.AsyncClient] = None):
        super().__init__(provider)
        self.client = client
        self.is_connected = client is not None
        self.timeout = self.config.system.http_timeout_seconds

    async def connect(self):
        """Initialize HTTP client"""
        if not self.client:
            self.client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        self.is_connected = True

    async def disconnect(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            self.client = None
        self.is_connected = False

    async def _get_json(
        self,
        url: str,
        params: Optional[dict] = None,
        allow_error_status: bool = False
    ) -> Tuple[httpx.Response, Any]:
        """GET a JSON document, mapping transport and decode failures to ProviderError"""
        if not self.client:
            await self.connect()

        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        if response.status_code >= 400 and not allow_error_status:
            raise ProviderError(self.name, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            # Plain-text error pages are left to the caller
            if allow_error_status and response.status_code >= 400:
                return response, None
            raise ProviderError(
                self.name, f"invalid JSON (HTTP {response.status_code})"
            ) from e

        return response, data


class QuoteAdapter(BaseAdapter):
    """Base class for quote providers"""

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Get current quote for symbol, raising ProviderError on failure"""
        pass


class NewsAdapter(BaseAdapter):
    """Base class for news providers"""

    @abstractmethod
    async def get_news(self, query: str, options: NewsOptions) -> List[Article]:
        """Search recent articles for a free-text query"""
        pass
