"""
Process-wide logging setup.

Module loggers never carry their own level; they inherit it from the root
logger, so ``configure_logging(level="DEBUG")`` at any point (the CLI's
``--verbose``) takes effect for every netdra module, including ones imported
earlier. Netns switching happens per thread, so records carry the thread name.
"""

import logging
import os
import sys
from typing import ClassVar, Optional, Union

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"
_COLOR_FORMAT = (
    "\x1b[90m%(asctime)s\x1b[0m | %(levelname_color)s | %(threadName)s | \x1b[36m%(name)s\x1b[0m | %(message)s"
)
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_configured: Optional[Union[str, int]] = None


def _supports_color() -> bool:
    return sys.stderr.isatty() and os.getenv("NO_COLOR") is None


class _LevelColorFormatter(logging.Formatter):
    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\x1b[37m",
        "INFO": "\x1b[32m",
        "WARNING": "\x1b[33m",
        "ERROR": "\x1b[31m",
        "CRITICAL": "\x1b[41m",
    }
    RESET: ClassVar[str] = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        record.levelname_color = f"{color}{record.levelname}{self.RESET}" if color else record.levelname
        return super().format(record)


def _formatter() -> logging.Formatter:
    fmt = os.getenv("NETDRA_LOG_FORMAT")
    if fmt is None and _supports_color():
        return _LevelColorFormatter(_COLOR_FORMAT, DEFAULT_DATEFMT)
    return logging.Formatter(fmt or DEFAULT_FORMAT, DEFAULT_DATEFMT)


def configure_logging(level: Optional[Union[str, int]] = None) -> Union[str, int]:
    """
    Set the root level and install one stderr handler.

    ``level`` defaults to ``Environment.get_log_level()``. Calling again with a
    different level changes the level only; handlers installed by someone else
    (pytest's capture handler, for one) are left alone.
    """
    from netdra.config.environment import Environment

    global _configured

    if isinstance(level, str):
        level = level.upper()
    if level is None:
        level = Environment.get_log_level()

    root = logging.getLogger()
    root.setLevel(level)
    if _configured is None and not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_formatter())
        root.addHandler(handler)
    _configured = level
    return level


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger, configuring the root logger on first use."""
    if _configured is None:
        configure_logging()
    return logging.getLogger(name)
