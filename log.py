"""Logging setup for simcache commands.

Progress lines (``skip:``, ``gen :``, ``zst :``...) go to stdout as plain
text; warnings go to stderr as ``WARN: <message>``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "simcache"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the simcache hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class _BelowWarning(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach the stdout/stderr handlers, and a file handler for ``log_file``."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # main() may run several times in one process
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    progress = logging.StreamHandler(sys.stdout)
    progress.setLevel(level)
    progress.addFilter(_BelowWarning())
    progress.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(progress)

    warnings = logging.StreamHandler(sys.stderr)
    warnings.setLevel(logging.WARNING)
    warnings.setFormatter(logging.Formatter("WARN: %(message)s"))
    logger.addHandler(warnings)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
