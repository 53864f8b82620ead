import logging
import os
import sys

LEVEL_ENV = "FLUENT_IMAGE_LOG_LEVEL"
CATEGORIES_ENV = "FLUENT_IMAGE_LOG_CATS"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_FORMATTER = logging.Formatter(fmt="[%(asctime)s] %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S")


class CategoryFilter(logging.Filter):
    """Pass records whose last logger-name segment is one of ``categories``."""

    def __init__(self, categories: set[str]):
        super().__init__()
        self.categories = categories

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.rsplit(".", 1)[-1] in self.categories


def _categories() -> set[str]:
    raw = os.getenv(CATEGORIES_ENV) or ""
    return {part.strip() for part in raw.split(",") if part.strip()}


def _stderr_handler(logger: logging.Logger) -> logging.StreamHandler:
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stderr:
            return handler
    handler = logging.StreamHandler(stream=sys.stderr)
    logger.addHandler(handler)
    return handler


def setup_logger(level: int = logging.WARNING, name: str = "fluent_image") -> logging.Logger:
    """Configure the package logger and return it.

    Safe to call repeatedly: the single stderr handler is reused and the
    level and category environment variables are applied again each time.
    """
    logger = logging.getLogger(name)
    env_level = (os.getenv(LEVEL_ENV) or "").strip().lower()
    logger.setLevel(_LEVELS.get(env_level, level))

    handler = _stderr_handler(logger)
    handler.setFormatter(_FORMATTER)
    handler.filters.clear()
    categories = _categories()
    if categories:
        handler.addFilter(CategoryFilter(categories))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
