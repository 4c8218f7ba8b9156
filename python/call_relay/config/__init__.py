"""Configuration module."""
from .settings import RelayConfig, get_config, reset_config, DROP_OLDEST, DROP_NEWEST
from .logging import setup_logging, get_logger

__all__ = [
    "RelayConfig",
    "get_config",
    "reset_config",
    "DROP_OLDEST",
    "DROP_NEWEST",
    "setup_logging",
    "get_logger",
]
