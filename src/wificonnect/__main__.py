"""WiFi Connect entry point.

Usage:
    python -m wificonnect [options]

Options:
    --portal-interface IFACE      Wireless interface (default: auto-detect)
    --portal-ssid SSID            Captive portal SSID
    --portal-passphrase PASS      Captive portal WPA2 passphrase (default: open)
    --portal-gateway ADDR         Captive portal gateway address
    --portal-dhcp-range RANGE     DHCP range "first,last"
    --portal-listening-port PORT  Portal web server port
    --activity-timeout SECONDS    Exit after this long without activity
    --ui-directory PATH           Web UI directory
    --config PATH                 Optional YAML config file
    --debug                       Enable debug logging
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from . import __version__
from .core.config import Config, load_config
from .core.errors import WiFiConnectError
from .core.logging import setup_logging, get_logger
from .network.portal import Portal
from .web import PortalWebServer, create_app

logger = get_logger(__name__)


class WiFiConnectService:
    """Main application coordinator.

    Owns the portal and its web server, and decides when to shut down:
    on a stop signal, after a successful connect, or on inactivity.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._portal: Portal | None = None
        self._stop_event = asyncio.Event()

    def request_stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        """Start the portal and serve until a reason to stop arrives.

        Raises:
            WiFiConnectError: On fatal startup errors
        """
        portal_config = self._config.portal
        self._portal = await Portal.create(portal_config)

        app = create_app(self._portal, portal_config.ui_directory)
        self._portal.attach_service(PortalWebServer(app, port=portal_config.port))

        try:
            await self._portal.start_portal()
            await self._wait_for_exit()
        finally:
            await self._portal.close_portal()

    async def _wait_for_exit(self) -> None:
        """Wait for a reason to stop.

        Raises:
            WiFiConnectError: If the portal could not be reopened
        """
        assert self._portal is not None
        waiters = {
            asyncio.create_task(self._stop_event.wait(), name="signal"): "Stop signal received",
            asyncio.create_task(self._portal.provisioned.wait(), name="provisioned"): "Network joined",
            asyncio.create_task(self._portal.wait_idle(), name="idle"): "Activity timeout reached",
            asyncio.create_task(self._portal.failed.wait(), name="failed"): "Portal lost",
        }
        done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            logger.info("%s, shutting down service", waiters[task])

        if self._portal.fault is not None:
            raise self._portal.fault


async def _serve(config: Config) -> None:
    service = WiFiConnectService(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_stop)

    await service.run()


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="WiFi Connect captive portal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--portal-interface", help="Wireless network interface to be used")
    parser.add_argument("--portal-ssid", help="SSID of the captive portal WiFi network")
    parser.add_argument("--portal-passphrase", help="WPA2 passphrase of the captive portal network")
    parser.add_argument("--portal-gateway", help="Gateway of the captive portal WiFi network")
    parser.add_argument("--portal-dhcp-range", help="DHCP range of the WiFi network")
    parser.add_argument(
        "--portal-listening-port",
        type=int,
        help="Listening port of the captive portal web server",
    )
    parser.add_argument(
        "--activity-timeout",
        type=int,
        help="Exit if no activity for the specified time (seconds)",
    )
    parser.add_argument("--ui-directory", type=Path, help="Web UI directory location")
    parser.add_argument("--config", type=Path, help="Path to YAML config file")
    parser.add_argument("--log-format", choices=["simple", "structured"], help="Log format")
    parser.add_argument("--log-file", help="Also log (as JSON) to this file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    setup_logging(level="DEBUG" if args.debug else "INFO")
    logger.info("WiFi Connect v%s", __version__)

    try:
        config = load_config(
            args.config,
            portal={
                "interface": args.portal_interface,
                "ssid": args.portal_ssid,
                "passphrase": args.portal_passphrase,
                "gateway": args.portal_gateway,
                "dhcp_range": args.portal_dhcp_range,
                "port": args.portal_listening_port,
                "activity_timeout": args.activity_timeout,
                "ui_directory": args.ui_directory,
            },
            logging_overrides={
                "level": "DEBUG" if args.debug else None,
                "format": args.log_format,
                "file": args.log_file,
            },
        )
    except WiFiConnectError as e:
        logger.critical("Invalid configuration: %s", e.cause or e)
        return 2

    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
    )

    try:
        asyncio.run(_serve(config))
    except WiFiConnectError as e:
        logger.critical(
            "Fatal error: %s",
            e,
            extra={"error_type": type(e).__name__, "severity": e.severity.value},
        )
        return 1

    logger.info("wifi-connect service stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
