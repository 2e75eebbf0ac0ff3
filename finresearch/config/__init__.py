"""
Configuration module for finresearch
"""

from .settings import Config, ConfigurationError, get_config, reset_config

__all__ = ["Config", "ConfigurationError", "get_config", "reset_config"]
