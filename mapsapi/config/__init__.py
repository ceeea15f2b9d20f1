"""Configuration and logging helpers for mapsapi."""

from .config_module import (
    ConfigError,
    get_bool_config,
    get_config,
    get_float_config,
    load_config,
    validate_config,
)
from .logger_module import (
    get_logger,
    initialize_logger,
    log_debug,
    log_error,
    log_info,
    log_progress,
    log_warning,
)

__all__ = [
    "ConfigError",
    "get_config",
    "get_bool_config",
    "get_float_config",
    "load_config",
    "validate_config",
    "get_logger",
    "initialize_logger",
    "log_progress",
    "log_info",
    "log_warning",
    "log_error",
    "log_debug",
]
