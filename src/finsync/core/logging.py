"""
Shared logging utilities.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once.

    Args:
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
    """
    global _configured
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    if _configured:
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # Provider HTTP traffic is logged by the adapters themselves.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
