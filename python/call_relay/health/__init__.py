"""Health check module."""
from .checker import HealthChecker

__all__ = ["HealthChecker"]
