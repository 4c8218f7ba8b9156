"""
Logging configuration for the call relay.

Environment Variables:
    RELAY_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
"""

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER = "relay"


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``relay`` logger tree.

    Args:
        level: Log level. Default from RELAY_LOG_LEVEL or INFO.
        format_string: Custom format. Default: timestamp + level + name + message.

    Returns:
        The root relay logger.
    """
    if level is None:
        level = os.getenv("RELAY_LOG_LEVEL", "INFO")
    resolved = getattr(logging, level.upper(), logging.INFO)

    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolved)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger inside the relay tree ('channel' -> 'relay.channel')."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
