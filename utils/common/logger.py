"""
Logging configuration for the portfolio graph.

Every module takes a child of the ``portfolio_graph`` logger via
``get_logger(__name__)``; the first call attaches handlers according to
LoggingSettings (LOG_LEVEL, LOG_TO_FILE, LOG_FILE).
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from utils.common.config import LoggingSettings, get_logging_settings

ROOT_LOGGER_NAME = "portfolio_graph"

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'


def setup_logger(settings: Optional[LoggingSettings] = None) -> logging.Logger:
    """
    Configure the ``portfolio_graph`` root logger.

    Calling it again replaces the handlers, so tests and entry points can
    switch level or file logging at runtime.

    Args:
        settings: Logging settings (defaults to environment)

    Returns:
        The configured root logger
    """
    settings = settings or get_logging_settings()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    logger.handlers.clear()
    # Handlers live here only; stop records reaching the interpreter's root logger
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    logger.addHandler(console_handler)

    if settings.to_file:
        log_path = Path(settings.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``portfolio_graph`` hierarchy.

    Module names outside the package (e.g. ``utils.common.db``) are nested
    under it so that one setup_logger call covers the whole project.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        setup_logger()

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
