"""
Logging setup for the expense client.

Every module grabs its own logger with get_logger(__name__).
setup_logging() configures the root handler once per process.
"""
import logging
import sys

from expense_client.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure root logging. Safe to call more than once."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    level = (level or settings.log_level).upper()
    if settings.debug:
        level = "DEBUG"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
