"""Logging setup.

The TUI owns the terminal, so records only go to an optional log file.
The format carries the thread name to tell the run worker from the UI loop.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FILE_ENV = "TAPR_LOG_FILE"
LOG_LEVEL_ENV = "TAPR_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def _resolve_level(level: str | None) -> int:
    name = (level or os.environ.get(LOG_LEVEL_ENV, "") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(log_file: Path | None = None, level: str | None = None) -> logging.Logger:
    """Attach a file handler to the ``tapr`` logger, or a null handler.

    ``log_file`` falls back to ``$TAPR_LOG_FILE``. Handlers from a previous
    call are replaced so repeated configuration does not duplicate records.
    """
    logger = logging.getLogger("tapr")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    if log_file is None and os.environ.get(LOG_FILE_ENV):
        log_file = Path(os.environ[LOG_FILE_ENV])

    if log_file is None:
        logger.addHandler(logging.NullHandler())
        return logger

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(_resolve_level(level))
    return logger
