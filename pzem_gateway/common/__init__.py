"""
Common Utilities

Shared modules used across the client and the CLI:
- config.py - Configuration dataclasses
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
"""

from .config import (
    GatewayConfig,
    RetrySettings,
    ScanSettings,
    ClientConfig,
    load_client_config,
    load_config_file,
)
from .exceptions import (
    PzemError,
    ConfigError,
    ConnectError,
    TransientError,
    MiscError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    log_device_read,
    log_device_write,
)

__all__ = [
    # Config
    "GatewayConfig",
    "RetrySettings",
    "ScanSettings",
    "ClientConfig",
    "load_client_config",
    "load_config_file",
    # Exceptions
    "PzemError",
    "ConfigError",
    "ConnectError",
    "TransientError",
    "MiscError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "log_device_read",
    "log_device_write",
]
