# Configuration module for the data-access client
from .settings import (
    ClientSettings,
    ConfigurationError,
    Environment,
    clear_settings_cache,
    get_settings,
    validate_startup,
)

__all__ = [
    "ClientSettings",
    "ConfigurationError",
    "Environment",
    "clear_settings_cache",
    "get_settings",
    "validate_startup",
]
