"""
Logging setup for the API process.

Modules log through ``logging.getLogger(__name__)``; this configures the
root handler once at startup.
"""

import logging

from nextstep.config import settings


def setup_logging(level: str = None, debug: bool = None) -> None:
    """
    Configure root logging.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL).
        debug: Force DEBUG level (defaults to settings.DEBUG).
    """
    debug = settings.DEBUG if debug is None else debug
    level_name = "DEBUG" if debug else (level or settings.LOG_LEVEL)

    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    # Reduce noise from the database driver and HTTP client (unless debugging)
    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
