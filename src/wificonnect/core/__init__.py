"""Core infrastructure module.

Provides foundational components:
- Configuration loading with validation
- Custom exception hierarchy
- Structured logging
- Retry logic with backoff
"""

from .config import Config, LoggingConfig, PortalConfig, load_config
from .errors import (
    WiFiConnectError,
    ConfigurationError,
    NetworkError,
    NetworkServiceError,
    DeviceNotFoundError,
    AccessPointNotFoundError,
    HotspotError,
    ProcessError,
)
from .logging import setup_logging, get_logger
from .retry import async_retry, RetryConfig

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "PortalConfig",
    "load_config",
    # Errors
    "WiFiConnectError",
    "ConfigurationError",
    "NetworkError",
    "NetworkServiceError",
    "DeviceNotFoundError",
    "AccessPointNotFoundError",
    "HotspotError",
    "ProcessError",
    # Logging
    "setup_logging",
    "get_logger",
    # Retry
    "async_retry",
    "RetryConfig",
]
