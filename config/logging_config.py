"""
Centralized logging configuration.

Module loggers are children of one application logger, so handlers are
attached once and every `get_logger(__name__)` shares them:

    from config.logging_config import get_logger
    logger = get_logger(__name__)
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Union

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_FILE,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_SIZE_MB,
)

APP_LOGGER_NAME = 'subtitle_translator'

_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None


def _app_logger() -> logging.Logger:
    global _console_handler

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if _console_handler is None:
        app_logger.setLevel(logging.DEBUG)
        app_logger.propagate = False

        _console_handler = logging.StreamHandler()
        _console_handler.setLevel(getattr(logging, LOG_LEVEL))
        _console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(_console_handler)
    return app_logger


def setup_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for a module, nested under the application logger.

    Args:
        name: Usually __name__. None returns the application logger.
    """
    app_logger = _app_logger()
    if not name or name == APP_LOGGER_NAME:
        return app_logger
    return app_logger.getChild(name)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Alias for setup_logger"""
    return setup_logger(name)


def configure_logging(
    level: Union[str, int] = LOG_LEVEL,
    log_file: Optional[str] = LOG_FILE,
) -> None:
    """
    Set the console level and (re)attach the rotating debug log file.

    Called once by the CLI. Library use without it logs to the console
    at LOG_LEVEL only.

    Args:
        level: Console level name or number (e.g. "DEBUG")
        log_file: Rotating log path; None disables the file handler
    """
    global _file_handler

    app_logger = _app_logger()
    if isinstance(level, str):
        name = level
        level = getattr(logging, name.upper(), None)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")
    _console_handler.setLevel(level)

    if _file_handler is not None:
        app_logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_SIZE_MB * 1024 * 1024,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        _file_handler.setLevel(logging.DEBUG)
        _file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(_file_handler)


# Usage: from config.logging_config import logger
logger = setup_logger()
