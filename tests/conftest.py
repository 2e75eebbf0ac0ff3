"""Shared fixtures: isolated configuration and a controllable clock."""

import pytest

from finresearch.config import reset_config

ENV_KEYS = (
    "ALPHA_VANTAGE_API_KEY",
    "FINNHUB_API_KEY",
    "NEWS_API_KEY",
    "CURRENTS_API_KEY",
    "LLM_API_KEY",
    "LLM_BASE_URL",
    "LLM_MODEL",
    "NEWS_LANGUAGE",
    "NEWS_REGION",
    "NEWS_COOLDOWN_HOURS",
    "LOG_LEVEL",
)


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Fresh config per test with no provider keys and a temp data dir."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FINRESEARCH_DATA_DIR", str(tmp_path / "data"))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock():
    return FakeClock()
