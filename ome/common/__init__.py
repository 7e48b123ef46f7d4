"""
Common Utilities

Shared modules used across the engine, API and CLI:
- config.py - Settings loaded from YAML + environment
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
"""

from .config import Settings, load_settings, DEFAULT_CONFIG_PATH
from .exceptions import (
    OmeError,
    ConfigError,
    ParseError,
    OrderParseError,
    BookParseError,
    BookError,
    BookExistsError,
    BookNotFoundError,
    OrderNotFoundError,
    OrderRejectedError,
    RpcError,
)
from .logging_setup import (
    setup_logging,
    configure_root,
    get_service_logger,
    log_order_event,
    log_fill,
)

__all__ = [
    # Config
    "Settings",
    "load_settings",
    "DEFAULT_CONFIG_PATH",
    # Exceptions
    "OmeError",
    "ConfigError",
    "ParseError",
    "OrderParseError",
    "BookParseError",
    "BookError",
    "BookExistsError",
    "BookNotFoundError",
    "OrderNotFoundError",
    "OrderRejectedError",
    "RpcError",
    # Logging
    "setup_logging",
    "configure_root",
    "get_service_logger",
    "log_order_event",
    "log_fill",
]
