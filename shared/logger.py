"""
Console logging for the campaign canvas library.

Every module logs through a named, cached logger with coloured level names so
conversion traces stay readable next to the host application's output.

Usage:
    from shared.logger import get_logger

    logger = get_logger(__name__)
    logger.debug("Serialized %d nodes", len(nodes))
"""

import logging
import sys
from typing import Optional

from shared.config import config

_loggers = {}


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m'
    }

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        return super().format(record)


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    resolved = logging.getLevelName(config.log_level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger that writes coloured, pipe-separated lines to stdout.

    Args:
        name: Logger name (typically __name__)
        level: Explicit level; defaults to ``config.log_level``

    Returns:
        Configured logger instance
    """
    if name in _loggers:
        return _loggers[name]

    resolved = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved)

    # Records still propagate to the host application's handlers.
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved)
        console_handler.setFormatter(ColoredFormatter(
            fmt='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(console_handler)

    _loggers[name] = logger
    return logger
