"""Configuration and logging for the result connector."""

from .logger import configure_logging, logger
from .settings import DEFAULT_BASE_URL, ScraperConfig, load_config

__all__ = [
    "configure_logging",
    "logger",
    "DEFAULT_BASE_URL",
    "ScraperConfig",
    "load_config",
]
