"""Joining the network the user picked in the portal.

The wireless device can only be in one network at a time, so the portal
hotspot is closed before the real connection is attempted and reopened
if that attempt fails.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ..core.errors import NetworkError, WiFiConnectError
from .nmcli import ActiveConnection, ActiveConnectionState, Connectivity
from .polling import wait_for_state
from .security import Security

if TYPE_CHECKING:
    from .hotspot import HotspotController
    from .nmcli import NetworkManagerClient
    from .scanner import AccessPointScanner

logger = logging.getLogger(__name__)

ACTIVATION_TIMEOUT = 20
CONNECTIVITY_TIMEOUT = 20


def build_credentials(
    security: Security, password: str, identity: str = ""
) -> dict[str, dict[str, Any]]:
    """Security settings matching an access point's classification.

    Args:
        security: Classification of the target AP
        password: Passphrase, key or enterprise password
        identity: Enterprise identity

    Returns:
        Settings blocks to merge into the connection profile
        (empty for open networks)
    """
    if Security.ENTERPRISE in security:
        return {
            "802-11-wireless-security": {"key-mgmt": "wpa-eap"},
            "802-1x": {
                "eap": ["peap"],
                "identity": identity,
                "password": password,
                "phase2-auth": "mschapv2",
            },
        }
    if Security.WPA2 in security or Security.WPA in security:
        return {
            "802-11-wireless-security": {"key-mgmt": "wpa-psk", "psk": password},
        }
    if Security.WEP in security:
        return {
            "802-11-wireless-security": {
                "key-mgmt": "none",
                "wep-key-type": 2,
                "wep-key0": password,
            },
        }
    return {}


class ConnectionOrchestrator:
    """Attempts a connection and falls back to the portal on failure.

    Usage:
        orchestrator = ConnectionOrchestrator(client, "wlan0", scanner, hotspot, reopen)
        joined = await orchestrator.connect("Home", "password123")
    """

    def __init__(
        self,
        client: "NetworkManagerClient",
        device: str,
        scanner: "AccessPointScanner",
        hotspot: "HotspotController",
        reopen_portal: Callable[[], Awaitable[None]],
    ) -> None:
        """Initialize orchestrator.

        Args:
            client: NetworkManager client
            device: Wireless device name
            scanner: Access point scanner for the device
            hotspot: Portal hotspot controller
            reopen_portal: Brings hotspot and portal service back up
        """
        self._client = client
        self._device = device
        self._scanner = scanner
        self._hotspot = hotspot
        self._reopen_portal = reopen_portal

    def build_settings(
        self, ssid: str, security: Security, password: str, identity: str = ""
    ) -> dict[str, dict[str, Any]]:
        """Complete client connection profile for `ssid`."""
        settings: dict[str, dict[str, Any]] = {
            "connection": {
                "id": ssid,
                "type": "802-11-wireless",
                "interface-name": self._device,
            },
            "802-11-wireless": {"ssid": ssid},
        }
        settings.update(build_credentials(security, password, identity))
        return settings

    async def connect(self, ssid: str, password: str = "", identity: str = "") -> bool:
        """Join `ssid`, reopening the portal if that fails.

        Args:
            ssid: Target network
            password: Network password
            identity: Enterprise identity

        Returns:
            True once the link is activated (internet reachability is only
            reported in the log)
        """
        try:
            await self._delete_existing_profiles(ssid)
            await self._hotspot.close()
        except WiFiConnectError as e:
            logger.error("Cannot prepare connection to %s: %s", ssid, e)
            return False

        logger.info("Connecting to access point %s", ssid)
        try:
            connection = await self._activate(ssid, password, identity)
        except WiFiConnectError as e:
            logger.error("Connection to %s failed: %s", ssid, e)
            await self._reopen()
            return False

        try:
            activated = await wait_for_state(
                ACTIVATION_TIMEOUT,
                lambda: self._client.get_active_state(connection),
                lambda state: state is ActiveConnectionState.ACTIVATED,
            )
        except asyncio.CancelledError:
            await self._delete_profile(connection)
            raise
        except NetworkError as e:
            logger.error("Cannot read connection state of %s: %s", ssid, e)
            activated = False

        if not activated:
            await self._delete_profile(connection)
            logger.warning("Connection to access point %s not activated", ssid)
            await self._reopen()
            return False

        await self._wait_for_connectivity()
        logger.info("Connected to %s", ssid)
        return True

    async def _activate(self, ssid: str, password: str, identity: str) -> ActiveConnection:
        access_point = await self._scanner.find(ssid)
        settings = self.build_settings(ssid, access_point.security, password, identity)
        return await self._client.add_and_activate(settings, self._device, access_point.handle)

    async def _wait_for_connectivity(self) -> None:
        # A missing internet connection does not undo a successful join
        try:
            reachable = await wait_for_state(
                CONNECTIVITY_TIMEOUT,
                self._client.get_connectivity,
                lambda state: state in (Connectivity.FULL, Connectivity.LIMITED),
            )
        except NetworkError as e:
            logger.warning("Getting internet connectivity failed: %s", e)
            return

        if reachable:
            logger.info("Internet connectivity established")
        else:
            logger.warning("Cannot establish internet connectivity")

    async def _delete_existing_profiles(self, ssid: str) -> None:
        logger.info("Deleting existing connections to %s", ssid)
        for profile in await self._client.list_wifi_profiles():
            if profile.ssid == ssid:
                await self._client.delete(profile.uuid)
                logger.info("Deleted stale profile %s (%s)", profile.name, profile.uuid)

    async def _delete_profile(self, connection: ActiveConnection) -> None:
        try:
            await self._client.delete(connection.uuid)
        except NetworkError as e:
            logger.error("Failed to delete connection %s: %s", connection.uuid, e)

    async def _reopen(self) -> None:
        try:
            await self._reopen_portal()
        except WiFiConnectError as e:
            logger.critical("Failed to reopen portal: %s", e)
