"""Root logger configuration."""

import logging

from smart_dca.config import settings

_NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "telegram", "telegram.ext")


def setup_logging(level: str | None = None):
    """Configure the root logger from settings.log_level."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
