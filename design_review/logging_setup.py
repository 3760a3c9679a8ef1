"""Logging configuration shared by the API, the CLI and scripts."""

import logging
import logging.config
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from config.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """
    Configure root logging once.

    Args:
        level: Console log level (uses settings if not provided)
        log_dir: Directory for a dated debug log file (uses settings if not provided)
    """
    global _configured
    if _configured:
        return

    level = (level or settings.log_level).upper()
    log_dir = log_dir or settings.log_dir

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": level,
        },
    }

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": str(directory / f"design-review-{date.today().isoformat()}.log"),
            "encoding": "utf-8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": LOG_FORMAT}},
        "handlers": handlers,
        "root": {
            "handlers": list(handlers),
            "level": "DEBUG" if log_dir else level,
        },
        # Third-party clients are chatty at INFO
        "loggers": {
            "httpx": {"level": "WARNING"},
            "sentence_transformers": {"level": "WARNING"},
        },
    })
    _configured = True
