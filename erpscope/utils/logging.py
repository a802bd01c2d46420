"""
Logging Utilities
=================

This module provides centralized logging configuration for erpscope.

Every module logs through its own `logging.getLogger(__name__)`; this module
only configures where those records go. Diagnostics that a caller needs to
inspect programmatically are additionally recorded on a DiagnosticReport
(see erpscope.utils.diagnostics).

Log Levels:
----------
- DEBUG: Per-field statistics, per-group epoch details
- INFO: Detection, discovery and selection summaries
- WARNING: Degraded but recovered situations (unknown format, no grouping
  fields, rejected overrides, AI fallback, empty groups)
- ERROR: Caller mistakes about to be raised

Example Usage:
    ```python
    from erpscope.utils.logging import setup_logging, get_logger

    setup_logging(level='INFO', log_file='logs/erpscope.log')

    logger = get_logger(__name__)
    logger.info("Analysis started")
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

import logging
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'

_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}
_RESET = '\033[0m'


def _to_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


class ColoredFormatter(logging.Formatter):
    """Colors the level name when writing to a terminal."""

    def __init__(self, fmt: str = DEFAULT_FORMAT, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors and sys.stdout.isatty()

    def formatMessage(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelno not in _LEVEL_COLORS:
            return super().formatMessage(record)
        plain = record.levelname
        record.levelname = f"{_LEVEL_COLORS[record.levelno]}{plain}{_RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


# =============================================================================
# SETUP
# =============================================================================

def setup_logging(
    level: Union[str, int] = 'INFO',
    log_file: Optional[str] = None,
    console: bool = True,
    use_colors: bool = True,
    format_string: str = DEFAULT_FORMAT,
    detailed: bool = False
) -> None:
    """
    Route all erpscope log records (and everything else) through the root logger.

    Meant to be called once by the host application; replaces the root
    logger's handlers.

    Args:
        level: Level name or number
        log_file: Also write to this file (parent directories are created)
        console: Write to stdout
        use_colors: Color level names on a terminal
        format_string: Record format
        detailed: Use DETAILED_FORMAT (adds file and line)

    Example:
        >>> setup_logging(level='DEBUG', log_file='logs/erpscope.log')
    """
    level = _to_level(level)
    fmt = DETAILED_FORMAT if detailed else format_string

    handlers = []
    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(ColoredFormatter(fmt, use_colors))
        handlers.append(stream)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(log_file, encoding='utf-8')
        to_file.setFormatter(logging.Formatter(fmt))
        handlers.append(to_file)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)

    logging.getLogger(__name__).info(f"Logging configured: level={logging.getLevelName(level)}")


def setup_logging_from_config(console: bool = True) -> None:
    """Configure logging from the 'logging' section of the ConfigManager."""
    from erpscope.core.config import get_config

    section = get_config().get_section('logging')
    setup_logging(
        level=section.get('level', 'INFO'),
        log_file=section.get('file'),
        console=console,
        format_string=section.get('format', DEFAULT_FORMAT)
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; use with __name__."""
    return logging.getLogger(name)


def set_level(level: Union[str, int], logger_name: Optional[str] = None) -> None:
    """Set the level of one logger (the root logger if no name is given)."""
    logging.getLogger(logger_name).setLevel(_to_level(level))


# =============================================================================
# HELPERS
# =============================================================================

def log_execution_time(logger: Optional[logging.Logger] = None,
                       level: int = logging.DEBUG):
    """
    Decorator logging how long each call took.

    Args:
        logger: Defaults to the logger of the decorated function's module
        level: Level of the timing record

    Example:
        >>> @log_execution_time()
        ... def discover(self, events, structure):
        ...     ...
    """
    def decorator(func):
        log = logger or logging.getLogger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                log.log(level, f"{func.__qualname__} executed in "
                               f"{time.perf_counter() - started:.3f}s")

        return wrapper
    return decorator


class LogLevel:
    """
    Temporarily change one logger's level.

    Example:
        >>> with LogLevel('DEBUG', 'erpscope.events'):
        ...     discovery = engine.discover(events, structure)
    """

    def __init__(self, level: Union[str, int], logger_name: Optional[str] = None):
        self.level = _to_level(level)
        self.logger = logging.getLogger(logger_name)
        self.previous = self.logger.level

    def __enter__(self) -> 'LogLevel':
        self.previous = self.logger.level
        self.logger.setLevel(self.level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.logger.setLevel(self.previous)
        return False


class ProgressLogger:
    """
    DEBUG-level progress records for a batch of known size, at most one per
    `log_interval` percent.

    Example:
        >>> progress = ProgressLogger(total=len(groups), desc="Epoching")
        >>> for group in groups:
        ...     progress.update()
        >>> progress.finish()
    """

    def __init__(self,
                 total: int,
                 desc: str = 'Progress',
                 logger: Optional[logging.Logger] = None,
                 log_interval: int = 10):
        self.total = total
        self.desc = desc
        self.logger = logger or logging.getLogger(__name__)
        self.log_interval = log_interval
        self.current = 0
        self._started = time.perf_counter()
        self._last_percent = 0.0
        self.logger.debug(f"{desc}: starting ({total} items)")

    def update(self, n: int = 1) -> None:
        self.current += n
        if self.total <= 0:
            return
        percent = 100.0 * self.current / self.total
        if self.current >= self.total or percent - self._last_percent >= self.log_interval:
            self._last_percent = percent
            self.logger.debug(
                f"{self.desc}: {self.current}/{self.total} ({percent:.0f}%), "
                f"{time.perf_counter() - self._started:.1f}s"
            )

    def finish(self) -> None:
        self.logger.debug(f"{self.desc}: Complete ({time.perf_counter() - self._started:.1f}s)")
