"""Standard library logging for commentsync and the HTTP stack beneath it.

Structured events go through logfire; this only sets levels and the console
format for plain `logging` records, chiefly those httpx emits.
"""

import logging
import sys

from commentsync.config import Settings

# Loggers of libraries the store client runs on
NOISY_LOGGERS = ("httpx", "httpcore", "dishka")


def log_level(settings: Settings) -> int:
    """Level for the commentsync loggers.

    Debug wins over environment; production only reports problems.
    """
    if settings.debug:
        return logging.DEBUG
    if settings.environment == "production":
        return logging.WARNING
    return logging.INFO


def setup_logging(settings: Settings) -> int:
    """Configure root and library logging.

    Library loggers stay at WARNING unless debug is on, in which case every
    store request httpx logs is shown too.

    Args:
        settings: Application settings

    Returns:
        Level applied to the commentsync loggers
    """
    level = log_level(settings)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    library_level = logging.DEBUG if settings.debug else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    logging.getLogger("commentsync").setLevel(level)

    logging.getLogger(__name__).info(
        "Logging configured: environment=%s, level=%s",
        settings.environment,
        logging.getLevelName(level),
    )
    return level
