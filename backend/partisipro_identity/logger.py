"""
Logging Setup — console + file logging under LOG_DIR.
"""
import logging
import os

from partisipro_identity.config import get_settings

ROOT_LOGGER = "partisipro_identity"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging() -> logging.Logger:
    """Attach console and file handlers to the package logger (once)."""
    global _configured
    logger = logging.getLogger(ROOT_LOGGER)
    if _configured:
        return logger

    settings = get_settings()
    logger.setLevel(settings.LOG_LEVEL.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _configured = True
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
