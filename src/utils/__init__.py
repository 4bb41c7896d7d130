"""Configuration and logging utilities."""

from .config import Config, load_config, get_config, reset_config
from .logger import setup_logging, get_logger

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "setup_logging",
    "get_logger",
]
