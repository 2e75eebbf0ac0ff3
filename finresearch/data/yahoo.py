"""
Yahoo Finance adapter for quotes
Secondary quote source; no API key but data may be delayed
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import yfinance as yf

from ..utils import get_logger
from .base import DataProvider, ProviderError, Quote, QuoteAdapter, utcnow

logger = get_logger(__name__)


def quote_from_yahoo(symbol: str, info: Optional[Dict[str, Any]]) -> Quote:
    """
    Normalize a yfinance info mapping
    Yahoo omits regularMarketPrice entirely for unknown symbols
    """
    if not info or info.get("regularMarketPrice") is None:
        raise ProviderError(DataProvider.YAHOO.value, f"invalid symbol or no data for {symbol}")

    price = float(info["regularMarketPrice"])
    previous_close = info.get("regularMarketPreviousClose") or info.get("previousClose")

    change = None
    change_percent = None
    if previous_close:
        change = price - previous_close
        change_percent = change / previous_close * 100

    volume = info.get("regularMarketVolume")
    return Quote(
        symbol=info.get("symbol") or symbol,
        price=price,
        open=info.get("regularMarketOpen"),
        high=info.get("regularMarketDayHigh"),
        low=info.get("regularMarketDayLow"),
        volume=int(volume) if volume is not None else None,
        change=change,
        change_percent=change_percent,
        timestamp=utcnow(),
        source=DataProvider.YAHOO.value
    )


class YahooFinanceAdapter(QuoteAdapter):
    """
    Yahoo Finance adapter using yfinance library
    yfinance is synchronous, so calls run on a thread pool
    """

    def __init__(self, max_workers: int = 5):
        super().__init__(DataProvider.YAHOO)
        self.max_workers = max_workers
        self.executor: Optional[ThreadPoolExecutor] = None

    async def connect(self):
        """No connection needed for yfinance"""
        if self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=self.max_workers)
        self.is_connected = True

    async def disconnect(self):
        """Cleanup thread pool"""
        if self.executor is not None:
            self.executor.shutdown(wait=False)
            self.executor = None
        self.is_connected = False

    def _fetch_info(self, symbol: str) -> Dict[str, Any]:
        return yf.Ticker(symbol).info

    async def get_quote(self, symbol: str) -> Quote:
        if self.executor is None:
            await self.connect()

        loop = asyncio.get_running_loop()
        try:
            info = await asyncio.wait_for(
                loop.run_in_executor(self.executor, self._fetch_info, symbol),
                timeout=self.config.system.http_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(self.name, f"timed out fetching {symbol}") from e
        except Exception as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        return quote_from_yahoo(symbol, info)
