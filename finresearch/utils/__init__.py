"""
Utility modules for finresearch
"""

from .logger import setup_logger, get_logger, log_async_performance, LogThrottle
from .cooldown import RateLimitCooldown

__all__ = [
    "setup_logger",
    "get_logger",
    "log_async_performance",
    "LogThrottle",
    "RateLimitCooldown"
]
