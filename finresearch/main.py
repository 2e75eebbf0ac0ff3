"""
Main entry point for finresearch
Provides CLI commands for quotes, news, research and settings
"""

import asyncio
import json
from contextlib import asynccontextmanager

import click

from finresearch.config import ConfigurationError, get_config
from finresearch.data import NewsManager, QuoteError, StockDataManager
from finresearch.data.alpha_vantage import TIMEFRAMES, TIMEFRAME_ALIASES
from finresearch.llm import LLMProcessor
from finresearch.orchestration import ResearchAgent
from finresearch.persistence import SettingsStore
from finresearch.utils.logger import get_logger

logger = get_logger(__name__)


def _load_settings(store: SettingsStore):
    """Overlay persisted settings on the environment configuration"""
    try:
        get_config().apply_settings(store.load_settings())
    except ConfigurationError as e:
        logger.warning(f"Ignoring persisted settings: {e}")


@asynccontextmanager
async def services():
    """Connected managers and research agent for one command"""
    store = SettingsStore()
    _load_settings(store)

    stock = StockDataManager()
    news = NewsManager()
    llm = LLMProcessor(store=store)
    llm.initialize()

    await stock.initialize()
    await news.initialize()
    await llm.connect()
    try:
        yield ResearchAgent(stock, news, llm, store)
    finally:
        await llm.disconnect()
        await news.shutdown()
        await stock.shutdown()


@click.group()
def cli():
    """Financial research assistant CLI"""
    pass


@cli.command()
def status():
    """Check configuration and LLM availability"""
    store = SettingsStore()
    _load_settings(store)
    config = get_config()

    click.echo("\n📋 Configuration Status:")
    click.echo(f"  • Log Level: {config.system.log_level}")
    click.echo(f"  • Quote cache TTL: {config.cache.quote_ttl_seconds}s")
    click.echo(f"  • News cache TTL: {config.cache.news_ttl_seconds}s")
    click.echo(f"  • News locale: {config.news.language}-{config.news.region}")
    click.echo(f"  • Settings DB: {store.db_path}")

    click.echo("\n🔑 API Keys:")
    api_keys = [
        ("Alpha Vantage", config.api.alpha_vantage_key not in ("", "demo")),
        ("Finnhub", bool(config.api.finnhub_key)),
        ("NewsAPI", bool(config.api.news_api_key)),
        ("Currents", bool(config.api.currents_api_key)),
        ("LLM", bool(config.llm.api_key))
    ]
    for name, is_set in api_keys:
        state = "✅ Set" if is_set else "❌ Missing"
        click.echo(f"  • {name}: {state}")

    async def check_llm():
        llm = LLMProcessor(store=store)
        llm.initialize()
        try:
            return await llm.health_check()
        finally:
            await llm.disconnect()

    health = asyncio.run(check_llm())
    click.echo(f"\n🤖 LLM: {health['status']} {health.get('message', '')}".rstrip())
    click.echo(f"📝 Stored runs: {len(store.get_run_logs(limit=None))}")


@cli.command()
@click.argument('symbols', nargs=-1, required=True)
def quote(symbols):
    """Get current quotes for one or more SYMBOLS"""
    async def run():
        async with services() as agent:
            return await agent.stock.get_quotes([s.upper() for s in symbols])

    for symbol, result in asyncio.run(run()).items():
        if isinstance(result, QuoteError):
            click.echo(f"❌ {symbol}: {result.error}")
            continue
        change = f"{result.change_percent:+.2f}%" if result.change_percent is not None else "n/a"
        click.echo(f"📈 {symbol}: ${result.price:.2f} ({change}) via {result.source}")


@cli.command()
@click.argument('symbol')
@click.option(
    '--timeframe',
    type=click.Choice(sorted(set(TIMEFRAMES) | set(TIMEFRAME_ALIASES))),
    default='daily',
    help='Bar size'
)
def history(symbol, timeframe):
    """Show recent OHLCV bars for SYMBOL"""
    async def run():
        async with services() as agent:
            return await agent.stock.get_history(symbol.upper(), timeframe)

    bars = asyncio.run(run())
    if not bars:
        click.echo(f"❌ No history available for {symbol.upper()}")
        return

    for bar in bars:
        click.echo(
            f"  {bar.date}  O {bar.open:.2f}  H {bar.high:.2f}  "
            f"L {bar.low:.2f}  C {bar.close:.2f}  V {bar.volume}"
        )


@cli.command()
@click.argument('query')
@click.option('--stock', is_flag=True, help='Treat QUERY as a ticker and search several variants')
@click.option('--page-size', default=10, show_default=True, help='Articles per provider request')
def news(query, stock, page_size):
    """Search news for QUERY"""
    async def run():
        async with services() as agent:
            if stock:
                return await agent.news.search_for_stock_news(query.upper())
            options = agent.news.default_options(page_size=page_size)
            return await agent.news.get_news(query, options)

    articles = asyncio.run(run())
    if not articles:
        click.echo("📰 No articles found")
        return

    for i, article in enumerate(articles, 1):
        published = article.published_at.strftime("%Y-%m-%d %H:%M") if article.published_at else "unknown"
        click.echo(f"  {i}. [{published}] {article.title} ({article.source})")
        click.echo(f"     {article.url}")


@cli.command()
@click.argument('query', nargs=-1, required=True)
@click.option('--as-json', is_flag=True, help='Print the full report as JSON')
def research(query, as_json):
    """Run a multi-step research flow for QUERY"""
    text = " ".join(query)

    async def run():
        async with services() as agent:
            return await agent.run(text)

    report = asyncio.run(run())
    _print_report(report, as_json)


@cli.command()
@click.argument('question', nargs=-1, required=True)
@click.option('--as-json', is_flag=True, help='Print the full report as JSON')
def ask(question, as_json):
    """Answer QUESTION step by step"""
    text = " ".join(question)

    async def run():
        async with services() as agent:
            return await agent.run_qa(text)

    report = asyncio.run(run())
    _print_report(report, as_json)


def _print_report(report, as_json: bool):
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
        return

    click.echo(f"\n🔎 {report.kind.upper()}: {report.query}")
    click.echo(f"\n{report.summary}")
    if report.articles:
        click.echo("\n📰 Headlines:")
        for article in report.articles[:5]:
            click.echo(f"  • {article.title}")
    click.echo(f"\n🧾 {len(report.steps)} steps logged (run #{report.run_id})")


@cli.command()
@click.option('--llm-key', help='LLM API key (re-enables remote calls)')
@click.option('--llm-url', help='Chat-completion endpoint URL')
@click.option('--llm-model', help='Model name')
@click.option('--alpha-vantage-key', help='Alpha Vantage API key')
@click.option('--finnhub-key', help='Finnhub API key')
@click.option('--news-api-key', help='NewsAPI key')
@click.option('--currents-key', help='Currents API key')
@click.option('--language', help='News language, e.g. en')
@click.option('--region', help='News region, e.g. US')
def configure(llm_key, llm_url, llm_model, alpha_vantage_key, finnhub_key,
              news_api_key, currents_key, language, region):
    """Persist provider keys and LLM settings"""
    store = SettingsStore()
    _load_settings(store)

    if llm_key:
        llm = LLMProcessor(store=store)
        llm.initialize()
        llm.update_config(llm_key, base_url=llm_url, model=llm_model)
    elif llm_url or llm_model:
        store.update_settings(llm_base_url=llm_url, llm_model=llm_model)

    settings = store.update_settings(
        alpha_vantage_key=alpha_vantage_key,
        finnhub_key=finnhub_key,
        news_api_key=news_api_key,
        currents_api_key=currents_key,
        news_language=language,
        news_region=region
    )

    click.echo("✅ Settings saved:")
    for key in sorted(settings):
        value = settings[key]
        shown = "***" if key.endswith("key") and value else value
        click.echo(f"  • {key}: {shown}")


@cli.command()
@click.option('--limit', default=10, show_default=True, help='Number of runs to show')
@click.option('--clear', is_flag=True, help='Delete all stored runs')
def logs(limit, clear):
    """Show recent research and Q&A runs"""
    store = SettingsStore()
    if clear:
        store.clear_run_logs()
        click.echo("🗑️  Run logs cleared")
        return

    runs = store.get_run_logs(limit=limit)
    if not runs:
        click.echo("No runs recorded yet")
        return

    for run in runs:
        payload = run["payload"]
        created = run["created_at"].strftime("%Y-%m-%d %H:%M")
        steps = payload.get("steps") or []
        click.echo(f"  #{run['id']} {created} [{run['kind']}] {payload.get('query', '')} • {len(steps)} steps")


if __name__ == "__main__":
    cli()
