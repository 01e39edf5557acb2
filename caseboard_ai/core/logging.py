import logging

from caseboard_ai.core.config import settings


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(_level(settings.LOG_LEVEL))
    return logger


def _level(name: str) -> int:
    value = logging.getLevelName((name or "INFO").strip().upper())
    return value if isinstance(value, int) else logging.INFO


"""
Logging setup and it configures:
- Log format
- Log level (LOG_LEVEL)
- Output destination

The main purpose:
Standardized application logging.
"""
