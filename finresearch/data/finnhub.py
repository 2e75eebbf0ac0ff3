"""
Finnhub REST adapter for quotes
Tertiary quote source; requires an API key
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..utils import get_logger
from .base import DataProvider, HTTPAdapter, ProviderError, Quote, QuoteAdapter, utcnow

logger = get_logger(__name__)

BASE_URL = "https://finnhub.io/api/v1"


def quote_from_finnhub(symbol: str, data: Dict[str, Any]) -> Quote:
    """
    Normalize a /quote response
    Finnhub reports errors in an 'error' field and answers unknown symbols
    with an all-zero payload
    """
    if not isinstance(data, dict):
        raise ProviderError(DataProvider.FINNHUB.value, "unexpected payload")
    if data.get("error"):
        raise ProviderError(DataProvider.FINNHUB.value, str(data["error"]))

    price = data.get("c")
    if not price:
        raise ProviderError(DataProvider.FINNHUB.value, f"no data found for {symbol}")

    timestamp = utcnow()
    if data.get("t"):
        timestamp = datetime.fromtimestamp(data["t"], tz=timezone.utc)

    return Quote(
        symbol=symbol,
        price=float(price),
        open=data.get("o"),
        high=data.get("h"),
        low=data.get("l"),
        change=data.get("d"),
        change_percent=data.get("dp"),
        timestamp=timestamp,
        source=DataProvider.FINNHUB.value
    )


class FinnhubAdapter(HTTPAdapter, QuoteAdapter):
    """Finnhub REST client for last-trade quotes"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None):
        super().__init__(DataProvider.FINNHUB, client)
        self._api_key = api_key

    @property
    def api_key(self) -> str:
        return self._api_key or self.config.api.finnhub_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def get_quote(self, symbol: str) -> Quote:
        if not self.is_configured:
            raise ProviderError(self.name, "FINNHUB_API_KEY not set")

        _, data = await self._get_json(f"{BASE_URL}/quote", params={
            "symbol": symbol,
            "token": self.api_key
        })
        return quote_from_finnhub(symbol, data)
