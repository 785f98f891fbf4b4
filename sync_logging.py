"""
Logging setup for the sync CLI: one timestamped run log file plus console
output. Library modules only call ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

DEFAULT_LOG_ROOT = "~/.discogs_shopify_sync/logs"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(name)s: %(message)s"


def setup_logging(
    level: int = logging.DEBUG,
    log_root: Optional[str] = None,
    console_level: int = logging.INFO,
) -> str:
    """Install the run log and console handlers on the root logger; return the log path."""
    log_root = os.path.expanduser(log_root or DEFAULT_LOG_ROOT)
    os.makedirs(log_root, exist_ok=True)
    log_file = os.path.join(log_root, datetime.now().strftime("run_%Y%m%d_%H%M%S.txt"))

    handlers = [
        (logging.FileHandler(log_file, mode="w", encoding="utf-8"), level, FILE_FORMAT),
        (logging.StreamHandler(), max(level, console_level), CONSOLE_FORMAT),
    ]

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    for handler, handler_level, fmt in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    root_logger.info("Sync log file: %s", log_file)
    return log_file
