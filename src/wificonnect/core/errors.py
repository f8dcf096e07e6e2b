"""Custom exception hierarchy for WiFi Connect.

Provides structured error handling with severity levels and context.
"""

from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Error severity levels for monitoring and logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class WiFiConnectError(Exception):
    """Base exception for all WiFi Connect errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        severity: Error severity level
    """

    severity: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "details": self.details,
        }


class ConfigurationError(WiFiConnectError):
    """Configuration validation or loading error.

    Raised when:
    - Config file is malformed
    - Command line values fail validation
    """

    pass


class NetworkError(WiFiConnectError):
    """Network operation errors.

    Raised when:
    - An nmcli command fails or times out
    - A connection profile cannot be added, activated or deleted
    - Service output cannot be parsed
    """

    pass


class NetworkServiceError(NetworkError):
    """NetworkManager itself is unreachable.

    Fatal at startup: nothing can be provisioned without it.
    """

    severity = ErrorSeverity.CRITICAL


class DeviceNotFoundError(NetworkError):
    """No usable wireless device is managed by NetworkManager."""

    severity = ErrorSeverity.CRITICAL


class AccessPointNotFoundError(NetworkError):
    """No access point (or not the requested one) is visible.

    Retried during scans before being reported.
    """

    severity = ErrorSeverity.WARNING


class HotspotError(NetworkError):
    """Hotspot lifecycle errors.

    Raised when:
    - A hotspot is created while one is already active
    - The hotspot profile never reaches the activated state
    - The hotspot profile cannot be torn down
    """

    pass


class ProcessError(WiFiConnectError):
    """Helper process errors.

    Raised when:
    - The executable cannot be spawned
    - Output pipes are unavailable
    - A process name is already supervised
    """

    pass
