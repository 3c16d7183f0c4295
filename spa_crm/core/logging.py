from __future__ import annotations

import logging
from logging import Logger

from .config import Settings, get_settings

# httpx logs every Supabase request at INFO; an import job makes one per row
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def configure_logging(settings: Settings | None = None) -> Logger:
    """
    Configure root logger for the API and the bot.

    Request-level chatter from the HTTP client and the scheduler is kept at
    WARNING outside local development.
    """

    settings = settings or get_settings()

    log_level = logging.DEBUG if settings.is_debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    library_level = logging.INFO if settings.is_debug else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logger = logging.getLogger("spa_crm")
    logger.setLevel(log_level)
    return logger
