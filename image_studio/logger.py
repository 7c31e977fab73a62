import logging
import os
import sys

BASE_LOGGER_NAME = "image_studio"
ENV_LOG_LEVEL = "IMAGE_STUDIO_LOG_LEVEL"
ENV_LOG_CATS = "IMAGE_STUDIO_LOG_CATS"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class CategoryFilter(logging.Filter):
    """Pass only records whose last name component is an allowed category.

    `image_studio.render.encoder` belongs to category `encoder`.
    """

    def __init__(self, categories: set[str]) -> None:
        super().__init__()
        self.categories = categories

    def filter(self, record: logging.LogRecord) -> bool:
        return (record.name or "").rsplit(".", 1)[-1] in self.categories


def _env_level(default: int) -> int:
    return _LEVELS.get((os.getenv(ENV_LOG_LEVEL) or "").strip().lower(), default)


def _env_categories() -> set[str]:
    return {c.strip() for c in (os.getenv(ENV_LOG_CATS) or "").split(",") if c.strip()}


def _stderr_handler(logger: logging.Logger) -> logging.StreamHandler:
    for h in logger.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            return h
    handler = logging.StreamHandler(stream=sys.stderr)
    logger.addHandler(handler)
    return handler


def setup_logger(level: int = logging.INFO, name: str = BASE_LOGGER_NAME) -> logging.Logger:
    """Create or update the package logger.

    The env overrides are re-read on every call so the CLI can set them after
    import. Repeated calls reuse the one stderr handler and replace its filter.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_env_level(level))

    handler = _stderr_handler(logger)
    handler.setFormatter(logging.Formatter(fmt="[%(asctime)s] %(levelname)s: %(message)s", datefmt="%H:%M:%S"))
    handler.filters.clear()
    categories = _env_categories()
    if categories:
        handler.addFilter(CategoryFilter(categories))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
