"""
Configuration Management Module.

Provides centralized configuration loading and diagnostic logging setup.
"""

from .settings import Settings, get_settings, reload_settings
from .logging_config import setup_logging, purge_old_logs

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "setup_logging",
    "purge_old_logs",
]
