"""Logging configuration with Rich formatting.

Provides setup_logging() for app initialization and get_logger() for module-level loggers.
"""

import logging
from typing import Optional
from rich.logging import RichHandler

def setup_logging(level: Optional[str] = None):
    if level is None:
        from .config import get_settings
        level = get_settings().LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)]
    )

    # Quiet down some noisy libraries
    for noisy in ("httpx", "slack_sdk", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

def get_logger(name: str):
    return logging.getLogger(name)
