"""Multi-step research and Q&A runs.

Composes the stock, news and LLM layers into a single run that records a
step log and appends it to the run-log store.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from ..data import AllProvidersFailedError, Article, Bar, NewsManager, Quote, StockDataManager
from ..data.base import utcnow
from ..llm import LLMProcessor, fallback_task_understanding
from ..llm.fallbacks import MAX_SYMBOLS, SYMBOL_PATTERN
from ..persistence import SettingsStore
from ..utils.logger import get_logger, log_async_performance

logger = get_logger(__name__)

QA_PREFIX = re.compile(r"^qa:\s*", re.IGNORECASE)
QA_KEYWORDS = re.compile(
    r"(integrate|differentiate|derivative|solve\s+for|percent|interest|km/h|m/s|"
    r"average\s+speed|compound|simple\s+interest|ratio)",
    re.IGNORECASE
)
MAX_HEADLINES = 5


def is_question(text: str) -> bool:
    """True for explicit "QA:" input or obvious calculation questions"""
    return bool(QA_PREFIX.match(text) or QA_KEYWORDS.search(text))


def plan_symbols(plan: Dict[str, Any]) -> List[str]:
    """Ticker symbols from a research plan; a bare string counts as one symbol"""
    raw = plan.get("symbols")
    if isinstance(raw, str):
        raw = [raw]
    elif not isinstance(raw, list):
        return []

    symbols = []
    for item in raw:
        if not isinstance(item, str):
            continue
        symbol = item.strip().upper()
        if SYMBOL_PATTERN.fullmatch(symbol) and symbol not in symbols:
            symbols.append(symbol)
    return symbols[:MAX_SYMBOLS]


@dataclass
class ResearchReport:
    """Outcome of one research or Q&A run."""
    kind: str
    query: str
    started_at: datetime
    summary: str
    symbols: List[str] = field(default_factory=list)
    articles: List[Article] = field(default_factory=list)
    history: List[Bar] = field(default_factory=list)
    quote: Optional[Quote] = None
    sentiment: Optional[float] = None
    analysis: Dict[str, Any] = field(default_factory=dict)
    steps: List[Dict[str, Any]] = field(default_factory=list)
    run_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "query": self.query,
            "started_at": self.started_at.isoformat(),
            "summary": self.summary,
            "symbols": self.symbols,
            "articles": [a.to_dict() for a in self.articles],
            "history_bars": len(self.history),
            "quote": self.quote.to_dict() if self.quote else None,
            "sentiment": self.sentiment,
            "analysis": self.analysis,
            "steps": self.steps
        }


class ResearchAgent:
    """Runs research and Q&A flows over the data and LLM layers."""

    def __init__(
        self,
        stock: StockDataManager,
        news: NewsManager,
        llm: LLMProcessor,
        store: Optional[SettingsStore] = None
    ):
        self.stock = stock
        self.news = news
        self.llm = llm
        self.store = store
        self.sentiment_analyzer = SentimentIntensityAnalyzer()

    async def run(self, text: str) -> ResearchReport:
        """Route free text to Q&A or research"""
        if is_question(text):
            return await self.run_qa(QA_PREFIX.sub("", text))
        return await self.run_research(text)

    @log_async_performance()
    async def run_research(self, query: str) -> ResearchReport:
        """Plan, gather news/history/quote, score headlines and synthesize.

        Args:
            query: Free-text research request, e.g. "AAPL latest news"

        Returns:
            ResearchReport with its step log; also appended to the run log
        """
        steps: List[Dict[str, Any]] = []
        started = utcnow()

        plan = await self.llm.research_plan(query)
        symbols = plan_symbols(plan)
        if not symbols:
            symbols = fallback_task_understanding(query)["symbols"]
        self._step(steps, "plan", symbols=symbols, fallback=bool(plan.get("fallback")))
        symbol = symbols[0] if symbols else None

        if symbol:
            articles = await self.news.search_for_stock_news(symbol)
        else:
            articles = await self.news.get_news(query)
        self._step(steps, "news", count=len(articles))

        history: List[Bar] = []
        quote: Optional[Quote] = None
        if symbol:
            history = await self.stock.get_history(symbol, "daily") or []
            self._step(steps, "history", symbol=symbol, bars=len(history))

            try:
                quote = await self.stock.get_quote(symbol)
                self._step(steps, "quote", symbol=symbol, price=quote.price, source=quote.source)
            except AllProvidersFailedError as e:
                self._step(steps, "quote", symbol=symbol, error=str(e))

        sentiment = self.score_headlines(articles)
        self._step(steps, "sentiment", score=sentiment)

        analysis: Dict[str, Any] = {}
        if symbol and quote is not None:
            interpreted = await self.llm.interpret_market_data(symbol, quote, articles)
            analysis = interpreted["analysis"]
            self._step(steps, "interpret", confidence=interpreted["confidence"])

        synthesis = await self.llm.research_synthesize(
            self._build_context(query, articles, history, quote, sentiment)
        )
        summary = self._summary_text(synthesis, query, articles, quote, sentiment)
        self._step(steps, "synthesize", fallback=bool(synthesis.get("fallback")))

        report = ResearchReport(
            kind="research",
            query=query,
            started_at=started,
            summary=summary,
            symbols=symbols,
            articles=articles,
            history=history,
            quote=quote,
            sentiment=sentiment,
            analysis=analysis,
            steps=steps
        )
        self._record(report)
        return report

    @log_async_performance()
    async def run_qa(self, question: str) -> ResearchReport:
        """Ask the model to solve a question step by step."""
        steps: List[Dict[str, Any]] = []
        started = utcnow()

        answer = await self.llm.answer_question(question)
        reasoning = answer.get("steps") if isinstance(answer.get("steps"), list) else []
        for index, text in enumerate(reasoning, start=1):
            self._step(steps, f"step_{index}", text=str(text))

        summary = str(answer.get("answer") or answer.get("text") or "")
        self._step(steps, "answer", fallback=bool(answer.get("fallback")))

        report = ResearchReport(
            kind="qa",
            query=question,
            started_at=started,
            summary=summary,
            analysis=answer,
            steps=steps
        )
        self._record(report)
        return report

    def score_headlines(self, articles: List[Article]) -> Optional[float]:
        """Mean VADER compound score over titles; None without articles"""
        if not articles:
            return None
        scores = [
            self.sentiment_analyzer.polarity_scores(f"{a.title} {a.description}")["compound"]
            for a in articles
        ]
        return round(sum(scores) / len(scores), 3)

    @staticmethod
    def _step(steps: List[Dict[str, Any]], name: str, **details):
        steps.append({"step": name, "at": time.time(), **details})
        logger.debug(f"Research step {name}: {details}")

    @staticmethod
    def _build_context(
        query: str,
        articles: List[Article],
        history: List[Bar],
        quote: Optional[Quote],
        sentiment: Optional[float]
    ) -> str:
        parts = [f"Query: {query}"]
        if quote is not None:
            parts.append(f"Price {quote.symbol}: {quote.price} ({quote.change_percent}%)")
        if history:
            closes = ", ".join(f"{bar.date}: {bar.close}" for bar in history)
            parts.append(f"Recent closes: {closes}")
        if sentiment is not None:
            parts.append(f"Headline sentiment: {sentiment}")
        if articles:
            titles = "; ".join(a.title for a in articles[:MAX_HEADLINES])
            parts.append(f"Headlines: {titles}")
        return "\n".join(parts)

    @staticmethod
    def _summary_text(
        synthesis: Dict[str, Any],
        query: str,
        articles: List[Article],
        quote: Optional[Quote],
        sentiment: Optional[float]
    ) -> str:
        for key in ("summary", "note", "text"):
            value = synthesis.get(key)
            if isinstance(value, str) and value:
                return value

        # Model unavailable: describe what was gathered
        lines = [f"Research for '{query}': {len(articles)} articles found."]
        if quote is not None:
            lines.append(f"{quote.symbol} last {quote.price} ({quote.source}).")
        if sentiment is not None:
            lines.append(f"Average headline sentiment {sentiment:+.2f}.")
        return " ".join(lines)

    def _record(self, report: ResearchReport):
        if self.store is None:
            return
        try:
            report.run_id = self.store.append_run_log(report.kind, report.to_dict())
        except Exception as e:
            logger.error(f"Failed to save run log: {e}")
