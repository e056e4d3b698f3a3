import logging
from typing import Optional

from settings import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "portal"


def setup_logging() -> logging.Logger:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Optional file sink next to the console output
    if settings.LOG_FILE and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        fh = logging.FileHandler(settings.LOG_FILE)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        fh.setLevel(level)
        logger.addHandler(fh)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER)
    return base.getChild(name) if name else base
