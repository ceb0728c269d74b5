"""
Centralized logging configuration.

All modules log through `logging.getLogger(__name__)`; this module only
installs the root handler once at process start.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging(level: Optional[str] = None, fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """
    Configure the root logger for the application.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: Log record format

    Returns:
        The root logger
    """
    global _configured

    root = logging.getLogger()
    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root.setLevel(log_level)

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt, datefmt=DEFAULT_DATE_FORMAT))
        root.addHandler(handler)
        _configured = True

    # aiohttp access chatter is not useful at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    return root
