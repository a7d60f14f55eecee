"""
Configuration package: constants, settings and logging.
"""
from .constants import *
from .logging_config import configure_logging, get_logger, logger

__all__ = [
    'configure_logging',
    'get_logger',
    'logger',
]
