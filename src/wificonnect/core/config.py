"""Configuration loading with Pydantic validation.

Provides an immutable configuration snapshot with:
- Pydantic models for validation
- Optional YAML file as the base layer
- Command line overrides on top
"""

import ipaddress
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY = "192.168.42.1"
DEFAULT_DHCP_RANGE = "192.168.42.2,192.168.42.254"
DEFAULT_SSID = "WiFi Connect"


# =============================================================================
# Configuration Models
# =============================================================================


class PortalConfig(BaseModel):
    """Captive portal network configuration."""

    model_config = ConfigDict(frozen=True)

    interface: str | None = Field(None, description="Wireless interface (None=auto-detect)")
    ssid: str = Field(DEFAULT_SSID, min_length=1, max_length=32, description="Portal SSID")
    passphrase: str | None = Field(None, description="WPA2 passphrase (None=open portal)")
    gateway: str = Field(DEFAULT_GATEWAY, description="Portal gateway address")
    dhcp_range: str = Field(DEFAULT_DHCP_RANGE, description="DHCP range 'first,last'")
    port: int = Field(80, ge=1, le=65535, description="Portal web server port")
    ui_directory: Path = Field(Path("ui"), description="Web UI directory")
    activity_timeout: int = Field(
        0, ge=0, description="Exit after this many idle seconds (0=never)"
    )

    @field_validator("passphrase")
    @classmethod
    def validate_passphrase(cls, v: str | None) -> str | None:
        """WPA2-PSK requires 8-63 characters; empty means open."""
        if not v:
            return None
        if not 8 <= len(v) <= 63:
            raise ValueError("passphrase must be 8-63 characters")
        return v

    @field_validator("gateway")
    @classmethod
    def validate_gateway(cls, v: str) -> str:
        ipaddress.IPv4Address(v)
        return v

    @field_validator("dhcp_range")
    @classmethod
    def validate_dhcp_range(cls, v: str) -> str:
        bounds = [part.strip() for part in v.split(",")]
        if len(bounds) != 2:
            raise ValueError("DHCP range must be 'first,last'")
        first, last = (ipaddress.IPv4Address(b) for b in bounds)
        if first > last:
            raise ValueError("DHCP range start is after its end")
        return ",".join(bounds)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field("INFO", description="Log level")
    format: str = Field("simple", description="Format: simple, structured")
    file: str | None = Field(None, description="Log file path")
    max_size_mb: int = Field(10, ge=1, description="Max log file size")
    backup_count: int = Field(3, ge=0, description="Number of backup files")


class Config(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(frozen=True)

    portal: PortalConfig = Field(default_factory=PortalConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Loading
# =============================================================================


def load_config(
    path: str | Path | None = None,
    portal: dict[str, Any] | None = None,
    logging_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration from an optional YAML file plus overrides.

    Overrides whose value is None are ignored so that unset command line
    flags fall through to the file or the defaults.

    Args:
        path: Optional YAML config file
        portal: Portal section overrides
        logging_overrides: Logging section overrides

    Returns:
        Validated, immutable configuration

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    data: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    "Failed to read config file", details={"path": str(config_path)}, cause=e
                )
            if not isinstance(data, dict):
                raise ConfigurationError(
                    "Config file must contain a mapping", details={"path": str(config_path)}
                )
            logger.info("Loaded config from %s", config_path)
        else:
            logger.info("Config file %s not found, using defaults", config_path)

    for section, overrides in (("portal", portal), ("logging", logging_overrides)):
        if not overrides:
            continue
        merged = dict(data.get(section) or {})
        merged.update({k: v for k, v in overrides.items() if v is not None})
        data[section] = merged

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError("Invalid configuration", cause=e, details={"errors": e.error_count()})
