"""
Configuration management for finresearch
Loads environment variables and provides centralized settings
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
from dotenv import load_dotenv
import logging

# Load environment variables
env_path = Path(__file__).parent.parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

DEFAULT_LLM_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_LLM_MODEL = "gpt-3.5-turbo"


class ConfigurationError(Exception):
    """Raised for invalid settings or a missing credential"""


@dataclass
class APIConfig:
    """Stock and news provider keys"""
    alpha_vantage_key: str = "demo"
    finnhub_key: str = ""
    news_api_key: str = ""
    currents_api_key: str = ""


@dataclass
class LLMConfig:
    """Chat-completion endpoint settings"""
    api_key: str = ""
    base_url: str = DEFAULT_LLM_URL
    model: str = DEFAULT_LLM_MODEL
    temperature: float = 0.3
    max_tokens: int = 1000


@dataclass
class CacheConfig:
    """Cache TTLs (seconds) and size caps"""
    quote_ttl_seconds: int = 60
    quote_max_entries: int = 256
    news_ttl_seconds: int = 300
    news_max_entries: int = 128
    llm_max_entries: int = 100


@dataclass
class NewsConfig:
    """News provider behaviour"""
    rate_limit_cooldown_hours: float = 6.0
    language: str = "en"
    region: str = "US"
    warn_interval_seconds: int = 300


@dataclass
class SystemConfig:
    """System-level configuration"""
    log_level: str = "INFO"
    http_timeout_seconds: float = 10.0

    # Paths
    project_root: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    data_dir: Optional[Path] = None
    settings_db: Path = field(init=False)

    def __post_init__(self):
        if self.data_dir is None:
            self.data_dir = self.project_root / "data"
        self.data_dir = Path(self.data_dir)
        self.settings_db = self.data_dir / "settings.db"


# Flat settings key -> (section, attribute)
SETTINGS_FIELDS: Dict[str, Tuple[str, str]] = {
    "llm_api_key": ("llm", "api_key"),
    "llm_base_url": ("llm", "base_url"),
    "llm_model": ("llm", "model"),
    "alpha_vantage_key": ("api", "alpha_vantage_key"),
    "finnhub_key": ("api", "finnhub_key"),
    "news_api_key": ("api", "news_api_key"),
    "currents_api_key": ("api", "currents_api_key"),
    "news_language": ("news", "language"),
    "news_region": ("news", "region"),
}


@dataclass
class Config:
    """Main configuration container"""
    api: APIConfig
    llm: LLMConfig
    cache: CacheConfig
    news: NewsConfig
    system: SystemConfig

    def apply_settings(self, settings: Mapping[str, Any]):
        """Apply a flat settings mapping (as persisted by the store)"""
        for key, value in settings.items():
            if key not in SETTINGS_FIELDS:
                raise ConfigurationError(f"Unknown setting: {key}")
            if value is None:
                continue
            section, attr = SETTINGS_FIELDS[key]
            setattr(getattr(self, section), attr, value)

    def export_settings(self) -> Dict[str, Any]:
        """Current values of every persistable setting"""
        return {
            key: getattr(getattr(self, section), attr)
            for key, (section, attr) in SETTINGS_FIELDS.items()
        }


# Singleton instance
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """Get or create the configuration singleton"""
    global _config_instance

    if _config_instance is None:
        api_config = APIConfig(
            alpha_vantage_key=os.getenv("ALPHA_VANTAGE_API_KEY", "demo"),
            finnhub_key=os.getenv("FINNHUB_API_KEY", ""),
            news_api_key=os.getenv("NEWS_API_KEY", ""),
            currents_api_key=os.getenv("CURRENTS_API_KEY", "")
        )

        llm_config = LLMConfig(
            api_key=os.getenv("LLM_API_KEY", ""),
            base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_URL),
            model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.3")),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1000"))
        )

        cache_config = CacheConfig(
            quote_ttl_seconds=int(os.getenv("QUOTE_CACHE_TTL_SECONDS", "60")),
            news_ttl_seconds=int(os.getenv("NEWS_CACHE_TTL_SECONDS", "300"))
        )

        news_config = NewsConfig(
            rate_limit_cooldown_hours=float(os.getenv("NEWS_COOLDOWN_HOURS", "6")),
            language=os.getenv("NEWS_LANGUAGE", "en"),
            region=os.getenv("NEWS_REGION", "US")
        )

        data_dir = os.getenv("FINRESEARCH_DATA_DIR")
        system_config = SystemConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
            data_dir=Path(data_dir) if data_dir else None
        )

        _config_instance = Config(
            api=api_config,
            llm=llm_config,
            cache=cache_config,
            news=news_config,
            system=system_config
        )

        if not llm_config.api_key:
            logging.warning("LLM_API_KEY not set - LLM calls will use rule-based fallbacks")

    return _config_instance


def reset_config():
    """Reset the configuration singleton (mainly for testing)"""
    global _config_instance
    _config_instance = None
