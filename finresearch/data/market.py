"""
Stock data manager with provider fallback
Coordinates Alpha Vantage, Yahoo Finance and Finnhub behind a short quote cache
"""

import time
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..config import get_config
from ..utils import get_logger
from .alpha_vantage import AlphaVantageAdapter
from .base import AllProvidersFailedError, Bar, Quote, QuoteAdapter, QuoteError
from .cache import TTLCache
from .fallback import FallbackChain, gather_independent
from .finnhub import FinnhubAdapter
from .yahoo import YahooFinanceAdapter

logger = get_logger(__name__)


class StockDataManager:
    """
    Quote lookups with caching and fallback

    get_quote() raises AllProvidersFailedError when every provider fails;
    get_quotes() never fails as a whole; get_history() degrades to None.
    """

    def __init__(
        self,
        providers: Optional[Sequence[QuoteAdapter]] = None,
        history_provider: Optional[AlphaVantageAdapter] = None,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], float] = time.time
    ):
        self.config = get_config()

        if providers is None:
            alpha_vantage = history_provider or AlphaVantageAdapter()
            providers = [alpha_vantage, YahooFinanceAdapter(), FinnhubAdapter()]
            history_provider = alpha_vantage

        self.providers: List[QuoteAdapter] = list(providers)
        self.history_provider = history_provider or AlphaVantageAdapter()

        self.cache = cache or TTLCache(
            max_size=self.config.cache.quote_max_entries,
            ttl_seconds=self.config.cache.quote_ttl_seconds,
            clock=clock,
            name="quotes"
        )
        self.chain: FallbackChain[Quote] = FallbackChain(
            "quotes",
            [(provider.name, provider.get_quote) for provider in self.providers]
        )

    async def initialize(self):
        """Connect all adapters"""
        logger.info("Initializing stock data manager...")
        for adapter in self._adapters():
            try:
                await adapter.connect()
            except Exception as e:
                logger.error(f"Failed to connect {adapter.name}: {e}")

    async def shutdown(self):
        """Disconnect all adapters"""
        for adapter in self._adapters():
            try:
                await adapter.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting {adapter.name}: {e}")

    def _adapters(self):
        adapters = list(self.providers)
        if all(self.history_provider is not adapter for adapter in adapters):
            adapters.append(self.history_provider)
        return adapters

    @staticmethod
    def _cache_key(symbol: str) -> str:
        return f"stock_{symbol}"

    async def get_quote(self, symbol: str) -> Quote:
        """
        Get a quote, trying each provider in order on a cache miss

        Raises:
            AllProvidersFailedError: naming the symbol, when every provider fails
        """
        key = self._cache_key(symbol)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Quote cache hit for {symbol}")
            return cached

        try:
            quote = await self.chain.run(symbol)
        except AllProvidersFailedError:
            logger.error(f"All quote providers failed for {symbol}")
            raise

        self.cache.put(key, quote)
        return quote

    async def get_quotes(self, symbols: Sequence[str]) -> Dict[str, Union[Quote, QuoteError]]:
        """Get quotes for several symbols concurrently; each symbol fails on its own"""
        outcomes = await gather_independent(symbols, self.get_quote)

        results: Dict[str, Union[Quote, QuoteError]] = {}
        for symbol, outcome in outcomes.items():
            if isinstance(outcome, Exception):
                logger.warning(f"Failed to get data for symbol {symbol}: {outcome}")
                results[symbol] = QuoteError(symbol=symbol, error=str(outcome))
            else:
                results[symbol] = outcome
        return results

    async def get_history(self, symbol: str, timeframe: str = "daily") -> Optional[List[Bar]]:
        """Recent OHLCV bars from the history provider, or None on any failure"""
        try:
            return await self.history_provider.get_history(symbol, timeframe)
        except Exception as e:
            logger.warning(f"Error fetching stock history for {symbol}: {e}")
            return None

    def get_cache_stats(self) -> dict:
        return self.cache.get_stats()
