"""Captive portal lifecycle.

Composes scanner, hotspot, process supervision and connection attempts
into the operations the portal web service and the entry point use:
start, list networks, connect, close.
"""

import asyncio
import logging
import time
from typing import Any, Protocol

from ..core.config import PortalConfig
from ..core.errors import WiFiConnectError
from .connector import ConnectionOrchestrator
from .hotspot import HotspotController
from .nmcli import NetworkManagerClient
from .process import ProcessSupervisor
from .scanner import AccessPointScanner
from .state import PortalState

logger = logging.getLogger(__name__)


class PortalService(Protocol):
    """The portal-facing service (web server) started with the hotspot."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class Portal:
    """Top-level captive portal.

    Hotspot and connect operations are serialized by one lock. Shutdown
    cancels an in-flight connect attempt and discards its result before
    tearing everything down.

    Usage:
        portal = await Portal.create(config.portal)
        portal.attach_service(web_server)
        await portal.start_portal()
        ...
        await portal.close_portal()
    """

    def __init__(
        self,
        config: PortalConfig,
        client: NetworkManagerClient,
        device: str,
        supervisor: ProcessSupervisor | None = None,
    ) -> None:
        """Initialize portal.

        Args:
            config: Portal configuration
            client: NetworkManager client
            device: Wireless device (interface) name
            supervisor: Helper process supervisor
        """
        self._config = config
        self._device = device
        self.state = PortalState()
        self.supervisor = supervisor or ProcessSupervisor()

        self.scanner = AccessPointScanner(client, device)
        self.hotspot = HotspotController(
            config, client, device, self.scanner, self.supervisor, self.state
        )
        self.orchestrator = ConnectionOrchestrator(
            client, device, self.scanner, self.hotspot, reopen_portal=self._reopen
        )

        self._service: PortalService | None = None
        self._lock = asyncio.Lock()
        self._operation: asyncio.Task | None = None
        self._closing = False
        self._last_activity = time.monotonic()

        # Set once a connect attempt has joined a network
        self.provisioned = asyncio.Event()

        # Set when the portal could not be brought back after a failed
        # connect; the device then has neither portal nor connection
        self.failed = asyncio.Event()
        self.fault: WiFiConnectError | None = None

    @classmethod
    async def create(
        cls, config: PortalConfig, client: NetworkManagerClient | None = None
    ) -> "Portal":
        """Connect to NetworkManager and resolve the wireless device.

        Raises:
            NetworkServiceError: If NetworkManager is unreachable
            DeviceNotFoundError: If no wireless device is managed
        """
        client = client or NetworkManagerClient()
        await client.ensure_running()
        device = await client.find_wifi_device(config.interface)
        logger.info("Device interface: %s", device)
        return cls(config, client, device)

    @property
    def device(self) -> str:
        return self._device

    def attach_service(self, service: PortalService) -> None:
        """Set the service started and stopped together with the hotspot."""
        self._service = service

    # -------------------------------------------------------------------------
    # Activity
    # -------------------------------------------------------------------------

    def touch(self) -> None:
        """Record portal activity."""
        self._last_activity = time.monotonic()

    def idle_seconds(self) -> float:
        return time.monotonic() - self._last_activity

    async def wait_idle(self, poll_interval: float = 1.0) -> None:
        """Return once the portal has been idle for the activity timeout.

        Never returns when the timeout is disabled (0).
        """
        timeout = self._config.activity_timeout
        if timeout <= 0:
            await asyncio.Event().wait()
        while self.idle_seconds() < timeout:
            await asyncio.sleep(poll_interval)
        logger.info("No activity for %ds", timeout)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start_portal(self) -> None:
        """Open the hotspot and start the portal service.

        Raises:
            WiFiConnectError: If the hotspot cannot be created
        """
        logger.info("Starting wifi connect captive portal")
        async with self._lock:
            self._closing = False
            await self._open()

    async def _open(self) -> None:
        await self.hotspot.create()
        if self._service is not None:
            await self._service.start()
        self.touch()

    async def _reopen(self) -> None:
        try:
            await self._open()
        except WiFiConnectError as e:
            self.fault = e
            self.failed.set()
            raise

    async def close_portal(self) -> None:
        """Abandon any connect attempt, then close hotspot and service."""
        self._closing = True
        operation = self._operation
        if operation is not None and not operation.done():
            logger.info("Abandoning in-flight connect attempt")
            operation.cancel()

        async with self._lock:
            try:
                await self.hotspot.close()
                logger.info("Closed hotspot")
            except WiFiConnectError as e:
                logger.error("Failed to close hotspot: %s", e)

            if self._service is not None:
                await self._service.stop()
                logger.info("Closed portal service")

            await self.supervisor.stop_all()

    def get_access_points(self) -> list[dict[str, Any]]:
        """Networks visible when the portal opened, strongest first."""
        self.touch()
        return [ap.summary() for ap in self.state.access_points]

    async def connect(self, ssid: str, password: str = "", identity: str = "") -> bool:
        """Attempt to join `ssid`.

        Returns:
            True if the network was joined, False otherwise (including
            when shutdown abandoned the attempt)
        """
        self.touch()
        async with self._lock:
            if self._closing:
                logger.warning("Portal is closing, ignoring connect to %s", ssid)
                return False

            task = asyncio.create_task(self.orchestrator.connect(ssid, password, identity))
            self._operation = task
            try:
                joined = await task
            except asyncio.CancelledError:
                if not task.cancelled() or not self._closing:
                    raise
                logger.warning("Connect to %s abandoned by shutdown", ssid)
                return False
            finally:
                self._operation = None

        if joined:
            self.provisioned.set()
        return joined
