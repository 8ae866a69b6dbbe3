"""
Configuration module for chatrelay.

Usage:
    from chatrelay.config import get_config

    config = get_config()
    logger.info("Relay configuration", instance_id=config.relay.instance_id)
"""

import sys
import threading
from functools import lru_cache
from os import getenv

from .models import AppConfig, BusConfig, LoggingConfig, PresenceConfig, RelayConfig

__all__ = ["get_config", "reset_config", "AppConfig", "BusConfig", "LoggingConfig", "PresenceConfig", "RelayConfig"]

_config_instance: AppConfig | None = None
_config_lock = threading.Lock()


def _is_test_mode() -> bool:
    """Detect if running under pytest."""
    if "pytest" in sys.modules:
        return True
    return bool(getenv("PYTEST_CURRENT_TEST"))


@lru_cache(maxsize=1)
def _get_config_cached() -> AppConfig:
    """Production config loader with caching."""
    global _config_instance  # pylint: disable=global-statement
    with _config_lock:
        if _config_instance is None:
            _config_instance = AppConfig()
    return _config_instance


def get_config() -> AppConfig:
    """
    Get application configuration (singleton in production, fresh in tests).

    Configuration is loaded from environment variables and the .env file.

    Raises:
        ValidationError: If configuration is invalid
    """
    if _is_test_mode():
        return AppConfig()
    return _get_config_cached()


def reset_config() -> None:
    """Reset the configuration cache so the next get_config() reloads."""
    global _config_instance  # pylint: disable=global-statement
    with _config_lock:
        _get_config_cached.cache_clear()
        _config_instance = None
