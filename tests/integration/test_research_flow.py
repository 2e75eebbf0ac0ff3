"""Integration tests for research and Q&A runs across all layers."""

import json
import pytest
import httpx
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, Mock

from finresearch.data import Article, Bar, NewsManager, ProviderError, Quote, StockDataManager
from finresearch.llm import LLMProcessor
from finresearch.orchestration import ResearchAgent, is_question
from finresearch.orchestration.research import plan_symbols
from finresearch.persistence import SettingsStore


def completion(payload):
    return {"choices": [{"message": {"content": json.dumps(payload)}}]}


def quote_provider(name, quote=None, error=None):
    provider = MagicMock()
    provider.name = name
    provider.get_quote = AsyncMock(return_value=quote, side_effect=error)
    provider.get_history = AsyncMock(return_value=[
        Bar(date=f"2024-01-{day:02d}", open=100.0, high=105.0, low=99.0, close=100.0 + day, volume=1000)
        for day in range(10, 0, -1)
    ])
    provider.connect = AsyncMock()
    provider.disconnect = AsyncMock()
    return provider


def news_provider(name, articles=None, rate_limited=False):
    provider = MagicMock()
    provider.name = name
    provider.get_news = AsyncMock(return_value=articles or [])
    provider.is_rate_limited = Mock(return_value=rate_limited)
    provider.connect = AsyncMock()
    provider.disconnect = AsyncMock()
    return provider


HEADLINES = [
    Article(
        title="Apple shares surge to record high on strong iPhone demand",
        url="https://example.com/1",
        source="Reuters",
        description="Great results impress investors",
        published_at=datetime(2024, 1, 5, tzinfo=timezone.utc),
    ),
    Article(
        title="Apple faces lawsuit over App Store fees",
        url="https://example.com/2",
        source="Bloomberg",
        published_at=datetime(2024, 1, 4, tzinfo=timezone.utc),
    ),
]


class TestResearchFlow:
    """Test end-to-end research runs with fake providers."""

    @pytest.fixture
    def store(self, tmp_path):
        return SettingsStore(tmp_path / "settings.db")

    @pytest.fixture
    def stock(self):
        alpha = quote_provider("alpha_vantage", error=ProviderError("alpha_vantage", "throttled"))
        yahoo = quote_provider("yahoo_finance", quote=Quote(
            symbol="AAPL", price=195.5, source="yahoo_finance", volume=50_000_000,
            change=3.2, change_percent=1.66
        ))
        return StockDataManager(providers=[alpha, yahoo], history_provider=alpha)

    @pytest.fixture
    def news(self):
        return NewsManager(
            newsapi=news_provider("newsapi", rate_limited=True),
            currents=news_provider("currents", articles=HEADLINES),
            rss=news_provider("google_news_rss"),
        )

    @pytest.mark.asyncio
    async def test_research_without_llm_key(self, stock, news, store):
        agent = ResearchAgent(stock, news, LLMProcessor(store=store), store)

        report = await agent.run_research("AAPL latest news")

        assert report.kind == "research"
        assert report.symbols == ["AAPL"]
        assert report.quote.source == "yahoo_finance"
        assert len(report.history) == 10
        assert [a.title for a in report.articles] == [a.title for a in HEADLINES]
        assert report.sentiment is not None
        assert -1.0 <= report.sentiment <= 1.0
        assert report.analysis["sentiment"] == "bullish"
        assert "AAPL" in report.summary
        assert [s["step"] for s in report.steps] == [
            "plan", "news", "history", "quote", "sentiment", "interpret", "synthesize"
        ]

        logs = store.get_run_logs()
        assert logs[0]["id"] == report.run_id
        assert logs[0]["kind"] == "research"
        assert logs[0]["payload"]["query"] == "AAPL latest news"
        assert logs[0]["payload"]["quote"]["price"] == 195.5

    @pytest.mark.asyncio
    async def test_research_without_symbol_uses_plain_news_search(self, stock, news, store):
        agent = ResearchAgent(stock, news, LLMProcessor(), store)

        report = await agent.run_research("semiconductor supply chain")

        assert report.symbols == []
        assert report.quote is None
        assert report.history == []
        assert [s["step"] for s in report.steps] == ["plan", "news", "sentiment", "synthesize"]
        assert news.newsapi.get_news.await_args.args[0] == "semiconductor supply chain"

    @pytest.mark.asyncio
    async def test_research_when_every_quote_provider_fails(self, news, store):
        failing = quote_provider("alpha_vantage", error=ProviderError("alpha_vantage", "down"))
        stock = StockDataManager(providers=[failing], history_provider=failing)
        agent = ResearchAgent(stock, news, LLMProcessor(), store)

        report = await agent.run_research("MSFT outlook")

        assert report.quote is None
        quote_step = next(s for s in report.steps if s["step"] == "quote")
        assert "Unable to fetch data for MSFT" in quote_step["error"]

    @pytest.mark.asyncio
    async def test_research_with_remote_synthesis(self, stock, news, store):
        def handler(request):
            body = json.loads(request.content)
            prompt = body["messages"][1]["content"]
            if prompt.startswith("Synthesize"):
                return httpx.Response(200, json=completion({"summary": "Apple looks strong."}))
            if prompt.startswith("Create a 3-step research plan"):
                return httpx.Response(200, json=completion({"symbols": ["AAPL"], "steps": ["news"]}))
            return httpx.Response(200, json=completion({"sentiment": "bullish"}))

        llm = LLMProcessor(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        llm.api_key = "sk-test"
        agent = ResearchAgent(stock, news, llm, store)

        report = await agent.run_research("Research Apple")

        assert report.symbols == ["AAPL"]
        assert report.summary == "Apple looks strong."
        assert report.analysis == {"sentiment": "bullish"}

    @pytest.mark.asyncio
    async def test_plan_with_single_symbol_string(self, stock, news, store):
        llm = MagicMock()
        llm.research_plan = AsyncMock(return_value={"symbols": "aapl", "steps": ["news"]})
        llm.interpret_market_data = AsyncMock(return_value={
            "symbol": "AAPL", "analysis": {"sentiment": "bullish"}, "confidence": 0.9
        })
        llm.research_synthesize = AsyncMock(return_value={"summary": "Apple looks strong."})
        news.search_for_stock_news = AsyncMock(return_value=HEADLINES)
        agent = ResearchAgent(stock, news, llm, store)

        report = await agent.run_research("Research Apple")

        assert report.symbols == ["AAPL"]
        news.search_for_stock_news.assert_awaited_once_with("AAPL")
        assert report.quote.symbol == "AAPL"
        assert report.started_at.tzinfo is not None

    def test_plan_symbols_filters_non_tickers(self):
        assert plan_symbols({"symbols": ["AAPL", "msft", "AAPL", "not a ticker", 7]}) == ["AAPL", "MSFT"]
        assert plan_symbols({"symbols": "TSLA"}) == ["TSLA"]
        assert plan_symbols({"symbols": None}) == []
        assert plan_symbols({}) == []


class TestQAFlow:
    """Test question answering runs."""

    def test_question_detection(self):
        assert is_question("QA: what is 15% of 80?")
        assert is_question("Integrate 3x^2 dx")
        assert is_question("compound interest on 1000 at 5%")
        assert not is_question("AAPL latest news")

    @pytest.mark.asyncio
    async def test_qa_with_model(self):
        def handler(request):
            return httpx.Response(200, json=completion({
                "answer": "12", "steps": ["15% = 0.15", "0.15 * 80 = 12"]
            }))

        llm = LLMProcessor(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        llm.api_key = "sk-test"
        agent = ResearchAgent(MagicMock(), MagicMock(), llm)

        report = await agent.run("QA: what is 15% of 80?")

        assert report.kind == "qa"
        assert report.query == "what is 15% of 80?"
        assert report.summary == "12"
        assert [s["step"] for s in report.steps] == ["step_1", "step_2", "answer"]
        assert report.run_id is None

    @pytest.mark.asyncio
    async def test_qa_without_model_is_logged(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.db")
        agent = ResearchAgent(MagicMock(), MagicMock(), LLMProcessor(), store)

        report = await agent.run_qa("What is 2 + 2?")

        assert report.analysis["fallback"] is True
        assert "not reachable" in report.summary
        assert store.get_run_logs()[0]["kind"] == "qa"
