"""Core configuration module for SlideCraft."""

from .config import Settings, get_settings
from .logging import setup_logging, get_logger
from .tracing import setup_tracing, is_tracing_enabled, traced

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "setup_tracing",
    "is_tracing_enabled",
    "traced",
]
