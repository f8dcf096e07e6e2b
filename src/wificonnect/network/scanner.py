"""Access point discovery.

Lists what the wireless device can see, classifies each access point and
returns one entry per SSID, strongest first.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..core.errors import AccessPointNotFoundError, NetworkError
from ..core.retry import RetryConfig, async_retry
from .nmcli import RawAccessPoint
from .security import Security, read_security

if TYPE_CHECKING:
    from .nmcli import NetworkManagerClient

logger = logging.getLogger(__name__)

SCAN_BACKOFF = 2.0
DEFAULT_RETRY_LIMIT = 10


@dataclass
class AccessPoint:
    """A visible wireless network."""

    ssid: str
    handle: str  # BSSID, binds a client activation to this AP
    strength: int  # 0-100
    security: Security

    def summary(self) -> dict[str, Any]:
        """Public view for the portal UI (strength and handle withheld)."""
        return {
            "ssid": self.ssid,
            "security": self.security.label,
        }


def read_access_point(raw: RawAccessPoint) -> AccessPoint:
    """Decode one service entry.

    Raises:
        NetworkError: If a property cannot be read
    """
    try:
        strength = int(raw.signal)
    except ValueError as e:
        raise NetworkError("invalid signal strength", details={"value": raw.signal}, cause=e)

    return AccessPoint(
        ssid=raw.ssid,
        handle=raw.bssid,
        strength=max(0, min(100, strength)),
        security=read_security(raw),
    )


class AccessPointScanner:
    """Scans a wireless device for access points.

    Usage:
        scanner = AccessPointScanner(client, "wlan0")
        access_points = await scanner.scan(retry_limit=10)
    """

    def __init__(self, client: "NetworkManagerClient", device: str) -> None:
        self._client = client
        self._device = device

    async def _scan_once(self) -> list[AccessPoint]:
        by_ssid: dict[str, AccessPoint] = {}

        for raw in await self._client.list_access_points(self._device):
            try:
                access_point = read_access_point(raw)
            except NetworkError as e:
                logger.error("Skipping access point %r: %s", raw.ssid, e)
                continue
            if access_point.ssid:
                by_ssid[access_point.ssid] = access_point

        if not by_ssid:
            raise AccessPointNotFoundError("no access point found")

        return sorted(by_ssid.values(), key=lambda ap: ap.strength, reverse=True)

    async def scan(self, retry_limit: int = DEFAULT_RETRY_LIMIT) -> list[AccessPoint]:
        """Scan for access points, retrying while none are visible.

        Args:
            retry_limit: Extra attempts after the first empty pass

        Returns:
            Access points sorted by descending strength

        Raises:
            AccessPointNotFoundError: If every attempt came back empty
            NetworkError: If the device cannot be queried
        """
        config = RetryConfig(
            max_attempts=retry_limit + 1,
            base_delay=SCAN_BACKOFF,
            exponential_base=1.0,
            jitter=False,
            retryable_exceptions=(AccessPointNotFoundError,),
        )
        access_points = await async_retry(config)(self._scan_once)()

        logger.info(
            "Found %d access points: %s",
            len(access_points),
            ", ".join(ap.ssid for ap in access_points),
        )
        return access_points

    async def find(self, ssid: str) -> AccessPoint:
        """Rescan and return the access point broadcasting `ssid`.

        Raises:
            AccessPointNotFoundError: If no visible AP matches
        """
        for access_point in await self.scan(DEFAULT_RETRY_LIMIT):
            if access_point.ssid == ssid:
                return access_point
        raise AccessPointNotFoundError(
            "could not find access point", details={"ssid": ssid}
        )
