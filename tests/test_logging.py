from __future__ import annotations

import logging

from spa_crm.core.logging import NOISY_LOGGERS, configure_logging


def test_production_logging_quiets_http_client(make_settings):
    logger = configure_logging(make_settings(environment="production"))

    assert logger.name == "spa_crm"
    assert logger.level == logging.INFO
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_local_logging_is_verbose(make_settings):
    logger = configure_logging(make_settings(environment="local"))

    assert logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.INFO
