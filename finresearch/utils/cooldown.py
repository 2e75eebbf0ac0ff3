"""
Rate-limit cooldown tracking for throttled providers
A provider that reports throttling is blocked until a fixed deadline passes
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitCooldown:
    """Per-provider cooldown state"""
    provider: str
    duration_seconds: float
    clock: Callable[[], float] = time.time
    blocked_until: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        """True while calls to the provider must be skipped"""
        with self._lock:
            return self.clock() < self.blocked_until

    @property
    def remaining_seconds(self) -> float:
        with self._lock:
            return max(0.0, self.blocked_until - self.clock())

    def trip(self):
        """Start (or restart) the cooldown window from now"""
        with self._lock:
            self.blocked_until = self.clock() + self.duration_seconds
        logger.warning(
            f"{self.provider} rate-limited, cooling down for "
            f"{self.duration_seconds / 3600:.1f}h"
        )

    def clear(self):
        with self._lock:
            self.blocked_until = 0.0
