"""Portal access point lifecycle.

Creates the local access point the captive portal is served on, backs it
with dnsmasq for DHCP and DNS, and tears both down again.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..core.config import PortalConfig
from ..core.errors import HotspotError, NetworkError, WiFiConnectError
from .nmcli import ActiveConnection, ActiveConnectionState
from .polling import wait_for_state
from .state import PortalState

if TYPE_CHECKING:
    from .nmcli import NetworkManagerClient
    from .process import ProcessSupervisor
    from .scanner import AccessPointScanner

logger = logging.getLogger(__name__)

DNSMASQ = "dnsmasq"
ACTIVATION_TIMEOUT = 20
SETTLE_DELAY = 5.0
SCAN_RETRY_LIMIT = 10


def dnsmasq_args(config: PortalConfig, interface: str) -> list[str]:
    """Arguments that turn dnsmasq into the portal's DHCP and catch-all DNS.

    Args:
        config: Portal configuration
        interface: Interface to serve on

    Returns:
        dnsmasq argument list
    """
    return [
        f"--address=/#/{config.gateway}",
        f"--dhcp-range={config.dhcp_range}",
        f"--dhcp-option=option:router,{config.gateway}",
        f"--interface={interface}",
        "--keep-in-foreground",
        "--bind-interfaces",
        "--except-interface=lo",
        "--conf-file",
        "--no-hosts",
    ]


class HotspotController:
    """Creates and closes the captive portal access point.

    At most one hotspot exists per controller; its state lives in the
    shared :class:`PortalState`.
    """

    def __init__(
        self,
        config: PortalConfig,
        client: "NetworkManagerClient",
        device: str,
        scanner: "AccessPointScanner",
        supervisor: "ProcessSupervisor",
        state: PortalState,
        dnsmasq_executable: str = DNSMASQ,
    ) -> None:
        self._config = config
        self._client = client
        self._device = device
        self._scanner = scanner
        self._supervisor = supervisor
        self._state = state
        self._dnsmasq = dnsmasq_executable

    @property
    def is_created(self) -> bool:
        return self._state.is_hotspot_created

    def build_settings(self) -> dict[str, dict[str, Any]]:
        """Connection profile for the portal access point."""
        settings: dict[str, dict[str, Any]] = {
            "connection": {
                "id": self._config.ssid,
                "type": "802-11-wireless",
                "interface-name": self._device,
                "autoconnect": False,
            },
            "802-11-wireless": {
                "ssid": self._config.ssid,
                "mode": "ap",
                "band": "bg",
                "hidden": False,
            },
            "ipv4": {
                "method": "manual",
                "addresses": f"{self._config.gateway}/24",
            },
            "ipv6": {
                "method": "ignore",
            },
        }
        if self._config.passphrase:
            settings["802-11-wireless-security"] = {
                "key-mgmt": "wpa-psk",
                "psk": self._config.passphrase,
            }
        return settings

    async def create(self) -> None:
        """Create the portal access point and start dnsmasq on it.

        Raises:
            HotspotError: If a hotspot already exists or never activates
            NetworkError: If scanning or the service calls fail
            ProcessError: If dnsmasq cannot be started
        """
        if self._state.is_hotspot_created:
            raise HotspotError("hotspot already created")

        logger.info("Creating access point %s", self._config.ssid)
        self._state.access_points = await self._scanner.scan(SCAN_RETRY_LIMIT)

        connection = await self._client.add_and_activate(self.build_settings(), self._device)

        try:
            activated = await wait_for_state(
                ACTIVATION_TIMEOUT,
                lambda: self._client.get_active_state(connection),
                lambda state: state is ActiveConnectionState.ACTIVATED,
            )
            if not activated:
                raise HotspotError(
                    "hotspot connection could not be activated",
                    details={"ssid": self._config.ssid},
                )

            self._state.mark_created(connection)
            await self._supervisor.start(
                DNSMASQ, self._dnsmasq, dnsmasq_args(self._config, self._device)
            )
        except (WiFiConnectError, asyncio.CancelledError) as e:
            logger.error("Hotspot creation failed, removing profile: %r", e)
            await self._discard(connection)
            self._state.mark_closed()
            raise

        logger.info("Access point created: %s", self._config.ssid)

    async def close(self) -> None:
        """Tear down the access point and dnsmasq.

        Service errors are logged; once close starts the hotspot always ends
        up closed so the device is free for the next connection.
        """
        connection = self._state.hotspot_connection
        if not self._state.is_hotspot_created or connection is None:
            return

        logger.info("Closing access point %s", self._config.ssid)
        try:
            await self._client.deactivate(connection)
        except NetworkError as e:
            logger.warning("Hotspot deactivation failed: %s", e)

        try:
            await self._client.delete(connection.uuid)
        except NetworkError as e:
            logger.error("Failed to delete hotspot profile %s: %s", connection.uuid, e)

        await self._supervisor.stop(DNSMASQ)
        self._state.mark_closed()

        # Let the device release the AP before anything reuses it
        await asyncio.sleep(SETTLE_DELAY)
        logger.info("Access point closed")

    async def _discard(self, connection: ActiveConnection) -> None:
        """Deactivate and delete a partially created profile."""
        try:
            await self._client.deactivate(connection)
        except NetworkError as e:
            logger.debug("Deactivating %s failed: %s", connection.uuid, e)
        try:
            await self._client.delete(connection.uuid)
        except NetworkError as e:
            logger.error("Failed to delete profile %s: %s", connection.uuid, e)
