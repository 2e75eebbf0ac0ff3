"""Unit tests for the stock data manager."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from finresearch.data.base import AllProvidersFailedError, Bar, ProviderError, Quote, QuoteError
from finresearch.data.market import StockDataManager


def make_provider(name, **kwargs):
    provider = MagicMock()
    provider.name = name
    provider.get_quote = AsyncMock(**kwargs)
    provider.connect = AsyncMock()
    provider.disconnect = AsyncMock()
    return provider


def make_quote(symbol="AAPL", price=190.0, source="alpha_vantage"):
    return Quote(symbol=symbol, price=price, source=source, volume=1000000)


class TestStockDataManager:
    """Test quote caching, fallback and history."""

    @pytest.fixture
    def history(self):
        provider = make_provider("alpha_vantage")
        provider.get_history = AsyncMock(return_value=[
            Bar(date="2024-01-02", open=1.0, high=2.0, low=0.5, close=1.5, volume=100)
        ])
        return provider

    @pytest.mark.asyncio
    async def test_quote_is_cached(self, clock, history):
        primary = make_provider("alpha_vantage", return_value=make_quote())
        manager = StockDataManager(providers=[primary], history_provider=history, clock=clock)

        first = await manager.get_quote("AAPL")
        second = await manager.get_quote("AAPL")

        assert first is second
        primary.get_quote.assert_awaited_once_with("AAPL")
        assert "stock_AAPL" in manager.cache.keys()

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, clock, history):
        primary = make_provider("alpha_vantage", return_value=make_quote())
        manager = StockDataManager(providers=[primary], history_provider=history, clock=clock)

        await manager.get_quote("AAPL")
        clock.advance(manager.config.cache.quote_ttl_seconds + 1)
        await manager.get_quote("AAPL")

        assert primary.get_quote.await_count == 2

    @pytest.mark.asyncio
    async def test_falls_back_in_order(self, clock, history):
        primary = make_provider("alpha_vantage", side_effect=ProviderError("alpha_vantage", "throttled"))
        secondary = make_provider("yahoo_finance", return_value=make_quote(source="yahoo_finance"))
        tertiary = make_provider("finnhub", return_value=make_quote(source="finnhub"))
        manager = StockDataManager(
            providers=[primary, secondary, tertiary], history_provider=history, clock=clock
        )

        quote = await manager.get_quote("AAPL")

        assert quote.source == "yahoo_finance"
        tertiary.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_providers_failing(self, clock, history):
        providers = [
            make_provider(name, side_effect=ProviderError(name, "down"))
            for name in ("alpha_vantage", "yahoo_finance", "finnhub")
        ]
        manager = StockDataManager(providers=providers, history_provider=history, clock=clock)

        with pytest.raises(AllProvidersFailedError, match="Unable to fetch data for ZZZZ"):
            await manager.get_quote("ZZZZ")
        assert len(manager.cache) == 0

    @pytest.mark.asyncio
    async def test_batch_quotes_fail_independently(self, clock, history):
        async def quote_for(symbol):
            if symbol == "BAD":
                raise ProviderError("alpha_vantage", "no data found")
            return make_quote(symbol=symbol)

        primary = make_provider("alpha_vantage", side_effect=quote_for)
        manager = StockDataManager(providers=[primary], history_provider=history, clock=clock)

        results = await manager.get_quotes(["AAPL", "BAD", "MSFT"])

        assert isinstance(results["AAPL"], Quote)
        assert isinstance(results["MSFT"], Quote)
        assert isinstance(results["BAD"], QuoteError)
        assert "BAD" in results["BAD"].error

    @pytest.mark.asyncio
    async def test_history(self, clock, history):
        manager = StockDataManager(providers=[], history_provider=history, clock=clock)

        bars = await manager.get_history("AAPL", "daily")

        assert bars[0].close == 1.5
        history.get_history.assert_awaited_once_with("AAPL", "daily")

    @pytest.mark.asyncio
    async def test_history_failure_returns_none(self, clock, history):
        history.get_history.side_effect = ProviderError("alpha_vantage", "throttled")
        manager = StockDataManager(providers=[], history_provider=history, clock=clock)

        assert await manager.get_history("AAPL") is None

    @pytest.mark.asyncio
    async def test_initialize_connects_each_adapter_once(self, clock, history):
        secondary = make_provider("yahoo_finance")
        manager = StockDataManager(providers=[history, secondary], history_provider=history, clock=clock)

        await manager.initialize()
        await manager.shutdown()

        history.connect.assert_awaited_once()
        secondary.connect.assert_awaited_once()
        history.disconnect.assert_awaited_once()
