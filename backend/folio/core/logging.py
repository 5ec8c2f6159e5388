"""
Logging configuration shared by the API, the Celery worker and scripts.
"""

import logging
import sys
from folio.core.config import settings

QUIET_LOGGERS = {
    "sqlalchemy": logging.WARNING,
    "asyncpg": logging.WARNING,
    "redis": logging.WARNING,
    "asyncio": logging.WARNING,
    "celery": logging.INFO,
    "uvicorn": logging.INFO,
}


def setup_logging() -> None:
    """Send application logs to stdout at LOG_LEVEL."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
