"""Unit tests for the provider fallback chain."""

import pytest
from unittest.mock import AsyncMock

from finresearch.data.base import AllProvidersFailedError, ProviderError
from finresearch.data.fallback import FallbackChain, gather_independent


class TestFallbackChain:
    """Test ordered provider fallback."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        first = AsyncMock(return_value="one")
        second = AsyncMock(return_value="two")
        chain = FallbackChain("test", [("first", first), ("second", second)])

        assert await chain.run("KEY") == "one"
        second.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_through_to_next_provider(self):
        first = AsyncMock(side_effect=ProviderError("first", "down"))
        second = AsyncMock(return_value="two")
        chain = FallbackChain("test", [("first", first), ("second", second)])

        assert await chain.run("KEY") == "two"
        first.assert_awaited_once_with("KEY")
        second.assert_awaited_once_with("KEY")

    @pytest.mark.asyncio
    async def test_all_fail_raises_with_attempts_and_cause(self):
        first_error = ProviderError("first", "down")
        last_error = ProviderError("second", "also down")
        chain = FallbackChain("test", [
            ("first", AsyncMock(side_effect=first_error)),
            ("second", AsyncMock(side_effect=last_error)),
        ])

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await chain.run("MSFT")

        error = exc_info.value
        assert error.key == "MSFT"
        assert "MSFT" in str(error)
        assert [name for name, _ in error.attempts] == ["first", "second"]
        assert error.last_error is last_error
        assert error.__cause__ is last_error

    @pytest.mark.asyncio
    async def test_each_run_restarts_at_first_provider(self):
        first = AsyncMock(side_effect=[ProviderError("first", "down"), "recovered"])
        second = AsyncMock(return_value="two")
        chain = FallbackChain("test", [("first", first), ("second", second)])

        assert await chain.run("KEY") == "two"
        assert await chain.run("KEY") == "recovered"
        assert first.await_count == 2
        assert second.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_chain_raises(self):
        chain = FallbackChain("test", [])
        with pytest.raises(AllProvidersFailedError):
            await chain.run("KEY")


class TestGatherIndependent:
    """Test concurrent per-key fetching."""

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self):
        async def fetch(key):
            if key == "BAD":
                raise ProviderError("test", "no data")
            return key.lower()

        results = await gather_independent(["AAPL", "BAD", "MSFT"], fetch)

        assert results["AAPL"] == "aapl"
        assert results["MSFT"] == "msft"
        assert isinstance(results["BAD"], ProviderError)

    @pytest.mark.asyncio
    async def test_duplicate_keys_fetched_once(self):
        fetch = AsyncMock(return_value=1)

        results = await gather_independent(["A", "A", "B"], fetch)

        assert list(results) == ["A", "B"]
        assert fetch.await_count == 2
