"""
Logging configuration for finresearch
Provides structured logging with color support
"""

import functools
import logging
import sys
import threading
import time
from datetime import datetime
from typing import Callable, Optional
import colorama
from colorama import Fore, Style

# Initialize colorama for Windows support
colorama.init()

# Custom log colors
LOG_COLORS = {
    'DEBUG': Fore.CYAN,
    'INFO': Fore.GREEN,
    'WARNING': Fore.YELLOW,
    'ERROR': Fore.RED,
    'CRITICAL': Fore.MAGENTA
}


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support"""

    def __init__(self, fmt=None, datefmt=None, use_colors=True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record):
        if self.use_colors:
            levelname = record.levelname
            if levelname in LOG_COLORS:
                record.levelname = f"{LOG_COLORS[levelname]}{levelname}{Style.RESET_ALL}"
                record.name = f"{Fore.BLUE}{record.name}{Style.RESET_ALL}"

        record.timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        return super().format(record)


class StructuredLogger:
    """Logger wrapper; keyword fields passed as ``extra`` land on the record"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level, msg, *args, **kwargs):
        getattr(self.logger, level)(msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self._log('debug', msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._log('info', msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._log('warning', msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._log('error', msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self._log('critical', msg, *args, **kwargs)


def setup_logger(
    name: str,
    level: Optional[str] = None,
    use_colors: bool = True
) -> StructuredLogger:
    """
    Set up a colored stderr logger

    Args:
        name: Logger name (usually __name__)
        level: Log level, defaults to LOG_LEVEL from config
        use_colors: Whether to use colored output on a tty

    Returns:
        StructuredLogger instance
    """
    from ..config.settings import get_config
    config = get_config()

    if level is None:
        level = config.system.log_level

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_format = "%(timestamp)s [%(levelname)s] %(name)s: %(message)s"
    console_handler.setFormatter(ColoredFormatter(console_format, use_colors=use_colors))
    logger.addHandler(console_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return StructuredLogger(logger)


def get_logger(name: str) -> StructuredLogger:
    """
    Get or create a logger instance

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return setup_logger(name)


class LogThrottle:
    """
    Lets a repeated message through at most once per interval
    Keeps a dead provider from flooding the log on every call
    """

    def __init__(self, interval_seconds: float, clock: Callable[[], float] = time.time):
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_emit: Optional[float] = None
        self._lock = threading.Lock()

    def ready(self) -> bool:
        """True if the caller should log now (and records the emission)"""
        now = self._clock()
        with self._lock:
            if self._last_emit is not None and now - self._last_emit <= self.interval_seconds:
                return False
            self._last_emit = now
            return True


# Async performance logging decorator
def log_async_performance(logger: Optional[StructuredLogger] = None):
    """Decorator to log async function performance"""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            nonlocal logger
            if logger is None:
                logger = get_logger(func.__module__)

            start_time = time.time()
            logger.debug(f"Starting async {func.__name__}")

            try:
                result = await func(*args, **kwargs)
                elapsed = time.time() - start_time
                logger.info(
                    f"Completed async {func.__name__}",
                    extra={'duration_ms': int(elapsed * 1000)}
                )
                return result
            except Exception as e:
                elapsed = time.time() - start_time
                logger.error(
                    f"Failed async {func.__name__}: {str(e)}",
                    extra={'duration_ms': int(elapsed * 1000)},
                    exc_info=True
                )
                raise

        return wrapper
    return decorator
