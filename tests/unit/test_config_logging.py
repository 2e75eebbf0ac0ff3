"""Unit tests for configuration, logging helpers and the rate-limit cooldown."""

import logging
import pytest

from finresearch.config import ConfigurationError, get_config, reset_config
from finresearch.utils import LogThrottle, RateLimitCooldown, log_async_performance, setup_logger


class TestConfig:
    """Test environment loading and runtime settings."""

    def test_defaults(self):
        config = get_config()

        assert config.api.alpha_vantage_key == "demo"
        assert config.llm.api_key == ""
        assert config.cache.quote_ttl_seconds == 60
        assert config.cache.news_ttl_seconds == 300
        assert config.cache.llm_max_entries == 100
        assert config.news.rate_limit_cooldown_hours == 6
        assert config.news.region == "US"

    def test_environment_values(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NEWS_API_KEY", "news-key")
        monkeypatch.setenv("LLM_MODEL", "local-model")
        monkeypatch.setenv("NEWS_REGION", "IN")
        reset_config()

        config = get_config()

        assert config.api.news_api_key == "news-key"
        assert config.llm.model == "local-model"
        assert config.news.region == "IN"
        assert config.system.settings_db == tmp_path / "data" / "settings.db"

    def test_singleton(self):
        assert get_config() is get_config()

    def test_apply_and_export_settings(self):
        config = get_config()
        config.apply_settings({"finnhub_key": "fh", "llm_model": "m1", "news_language": None})

        exported = config.export_settings()

        assert exported["finnhub_key"] == "fh"
        assert exported["llm_model"] == "m1"
        assert exported["news_language"] == "en"

    def test_unknown_setting_rejected(self):
        with pytest.raises(ConfigurationError):
            get_config().apply_settings({"not_a_setting": 1})


class TestLogThrottle:
    """Test once-per-interval warning throttling."""

    def test_interval(self, clock):
        throttle = LogThrottle(300, clock=clock)

        assert throttle.ready()
        assert not throttle.ready()
        clock.advance(300)
        assert not throttle.ready()
        clock.advance(1)
        assert throttle.ready()


class TestRateLimitCooldown:
    """Test provider cooldown windows."""

    def test_trip_and_expire(self, clock):
        cooldown = RateLimitCooldown(provider="newsapi", duration_seconds=3600, clock=clock)
        assert not cooldown.is_active

        cooldown.trip()
        assert cooldown.is_active
        assert cooldown.remaining_seconds == 3600

        clock.advance(3599)
        assert cooldown.is_active
        clock.advance(1)
        assert not cooldown.is_active
        assert cooldown.remaining_seconds == 0

    def test_clear(self, clock):
        cooldown = RateLimitCooldown(provider="newsapi", duration_seconds=3600, clock=clock)
        cooldown.trip()
        cooldown.clear()
        assert not cooldown.is_active


class TestLogging:
    """Test logger setup and the async performance decorator."""

    def test_setup_logger_level_and_extra_fields(self):
        logger = setup_logger("finresearch.test.extra", level="DEBUG", use_colors=False)

        records = []
        handler = logging.Handler()
        handler.emit = records.append
        logger.logger.addHandler(handler)

        logger.info("provider switched", extra={"duration_ms": 12})

        assert records[0].getMessage() == "provider switched"
        assert records[0].duration_ms == 12
        assert logger.logger.level == logging.DEBUG
        assert logger.logger.propagate is False

    @pytest.mark.asyncio
    async def test_log_async_performance(self):
        @log_async_performance()
        async def work(value):
            return value * 2

        @log_async_performance()
        async def broken():
            raise RuntimeError("boom")

        assert await work(21) == 42
        with pytest.raises(RuntimeError):
            await broken()
