"""
Data acquisition layer
Handles quotes, history and news with caching and provider fallback
"""

from .base import (
    DataProvider,
    Quote,
    QuoteError,
    Bar,
    Article,
    NewsOptions,
    ProviderError,
    RateLimitedError,
    AllProvidersFailedError,
    BaseAdapter,
    HTTPAdapter,
    QuoteAdapter,
    NewsAdapter
)

from .cache import TTLCache, CacheEntry
from .fallback import FallbackChain, gather_independent
from .market import StockDataManager
from .news_manager import NewsManager

__all__ = [
    # Records and errors
    'DataProvider',
    'Quote',
    'QuoteError',
    'Bar',
    'Article',
    'NewsOptions',
    'ProviderError',
    'RateLimitedError',
    'AllProvidersFailedError',

    # Base classes
    'BaseAdapter',
    'HTTPAdapter',
    'QuoteAdapter',
    'NewsAdapter',

    # Main interfaces
    'TTLCache',
    'CacheEntry',
    'FallbackChain',
    'gather_independent',
    'StockDataManager',
    'NewsManager'
]
