"""Process-wide log setup for services embedding Taskboard"""
import logging
import sys

from taskboard.infrastructure.config.settings import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers held at WARNING unless debugging
_NOISY_LOGGERS = ("sqlalchemy.engine", "asyncio")


def setup_logging(settings: Settings | None = None):
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stdout)])

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if settings.debug else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
