"""Logging setup for the vault-pilot CLI."""

import logging
import os
import sys
from typing import TextIO

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# HTTP and chain libraries that flood DEBUG output
NOISY_LOGGERS = ("urllib3", "requests", "web3")

LEVEL_STYLES = {
    "TRACE": "\033[90m",
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;35m",
}
RESET = "\033[0m"


class LevelColorFormatter(logging.Formatter):
    """Color the level name only; the record is restored after formatting."""

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        style = LEVEL_STYLES.get(original)
        if style:
            record.levelname = f"{style}{original}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def resolve_level(log_level: str | None = None) -> tuple[str, int]:
    """Level name and number from ``log_level`` or ``LOG_LEVEL``, INFO when unknown."""
    name = (log_level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    if name == "TRACE":
        return name, TRACE
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        return "INFO", logging.INFO
    return name, level


def setup_logging(log_level: str | None = None, stream: TextIO | None = None) -> None:
    """Send log records to stderr so stdout carries only tables and JSON.

    Colors are used when the stream is a terminal. HTTP client loggers stay
    at WARNING under DEBUG and open up fully under TRACE.
    """
    name, level = resolve_level(log_level)
    stream = stream or sys.stderr

    handler = logging.StreamHandler(stream)
    fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    datefmt = "%H:%M:%S"
    if stream.isatty():
        handler.setFormatter(LevelColorFormatter(fmt=fmt, datefmt=datefmt))
    else:
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    noisy_level = TRACE if name == "TRACE" else max(level, logging.WARNING)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(noisy_level)

