"""
Alpha Vantage adapter for quotes and historical bars
Primary quote source; free tier signals throttling through a "Note" field
"""

from typing import Any, Dict, List, Optional

import httpx

from ..utils import get_logger
from .base import (
    Bar, DataProvider, HTTPAdapter, ProviderError, Quote, QuoteAdapter,
    RateLimitedError, utcnow
)

logger = get_logger(__name__)

BASE_URL = "https://www.alphavantage.co/query"

# timeframe -> (function, response key)
TIMEFRAMES = {
    "daily": ("TIME_SERIES_DAILY", "Time Series (Daily)"),
    "weekly": ("TIME_SERIES_WEEKLY", "Weekly Time Series"),
    "monthly": ("TIME_SERIES_MONTHLY", "Monthly Time Series"),
}

TIMEFRAME_ALIASES = {
    "1day": "daily",
    "1week": "weekly",
    "1month": "monthly",
}

HISTORY_BARS = 10


def normalize_timeframe(timeframe: str) -> str:
    """Map 'daily'/'1day' style names onto a supported timeframe"""
    key = TIMEFRAME_ALIASES.get(timeframe, timeframe)
    if key not in TIMEFRAMES:
        raise ValueError(f"Unsupported timeframe: {timeframe}")
    return key


def _number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).rstrip('%'))
    except ValueError:
        return None


def _check_throttled(data: Dict[str, Any]):
    if not isinstance(data, dict):
        raise ProviderError(DataProvider.ALPHA_VANTAGE.value, "unexpected payload")
    for field in ("Note", "Information"):
        if data.get(field):
            raise RateLimitedError(DataProvider.ALPHA_VANTAGE.value, "API rate limit exceeded")
    if data.get("Error Message"):
        raise ProviderError(DataProvider.ALPHA_VANTAGE.value, data["Error Message"])


def quote_from_alpha_vantage(symbol: str, data: Dict[str, Any]) -> Quote:
    """Normalize a GLOBAL_QUOTE response"""
    _check_throttled(data)

    quote = data.get("Global Quote")
    if not quote or _number(quote.get("05. price")) is None:
        raise ProviderError(DataProvider.ALPHA_VANTAGE.value, f"no data found for {symbol}")

    volume = _number(quote.get("06. volume"))
    return Quote(
        symbol=symbol,
        price=_number(quote["05. price"]),
        open=_number(quote.get("02. open")),
        high=_number(quote.get("03. high")),
        low=_number(quote.get("04. low")),
        volume=int(volume) if volume is not None else None,
        change=_number(quote.get("09. change")),
        change_percent=_number(quote.get("10. change percent")),
        timestamp=utcnow(),
        source=DataProvider.ALPHA_VANTAGE.value
    )


def bars_from_alpha_vantage(data: Dict[str, Any], timeframe: str) -> List[Bar]:
    """Normalize a TIME_SERIES_* response into the most recent bars, newest first"""
    _check_throttled(data)

    _, series_key = TIMEFRAMES[normalize_timeframe(timeframe)]
    series = data.get(series_key)
    if not isinstance(series, dict):
        raise ProviderError(DataProvider.ALPHA_VANTAGE.value, f"missing '{series_key}'")

    bars = []
    for date in sorted(series, reverse=True)[:HISTORY_BARS]:
        values = series[date]
        bars.append(Bar(
            date=date,
            open=float(values["1. open"]),
            high=float(values["2. high"]),
            low=float(values["3. low"]),
            close=float(values["4. close"]),
            volume=int(float(values["5. volume"]))
        ))
    return bars


class AlphaVantageAdapter(HTTPAdapter, QuoteAdapter):
    """
    Alpha Vantage REST client
    The public 'demo' key works for a handful of symbols
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None):
        super().__init__(DataProvider.ALPHA_VANTAGE, client)
        self._api_key = api_key

    @property
    def api_key(self) -> str:
        return self._api_key or self.config.api.alpha_vantage_key or "demo"

    async def get_quote(self, symbol: str) -> Quote:
        _, data = await self._get_json(BASE_URL, params={
            "function": "GLOBAL_QUOTE",
            "symbol": symbol,
            "apikey": self.api_key
        })
        return quote_from_alpha_vantage(symbol, data)

    async def get_history(self, symbol: str, timeframe: str = "daily") -> List[Bar]:
        function, _ = TIMEFRAMES[normalize_timeframe(timeframe)]
        _, data = await self._get_json(BASE_URL, params={
            "function": function,
            "symbol": symbol,
            "apikey": self.api_key,
            "outputsize": "compact"
        })
        return bars_from_alpha_vantage(data, timeframe)
