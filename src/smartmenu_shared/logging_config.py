"""
Structured logging configuration.
"""

import logging
import sys
from pythonjsonlogger import jsonlogger


def configure_logging(app_name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Configure structured JSON logging for the application.

    The handler goes on the root logger so module loggers obtained through
    get_logger(__name__) share the same output.

    Args:
        app_name: Name of the application
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    logger = logging.getLogger(app_name)
    logger.setLevel(level)

    if any(getattr(handler, "_smartmenu", False) for handler in root.handlers):
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler._smartmenu = True  # type: ignore[attr-defined]
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        datefmt="%Y-%m-%dT%H:%M:%S",
        static_fields={"service": app_name},
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
