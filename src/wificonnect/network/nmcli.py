"""NetworkManager access through nmcli.

Every call goes through nmcli with list arguments (no shell). nmcli is
the command line front end of NetworkManager's D-Bus API; this module
is the only place that knows its argument syntax and output format.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..core.errors import DeviceNotFoundError, NetworkError, NetworkServiceError

logger = logging.getLogger(__name__)

# Settings keys whose values never reach the logs
SECRET_KEYS = {"psk", "password", "wep-key0", "wep-key1", "wep-key2", "wep-key3"}

_UUID_PATTERN = re.compile(r"\(([0-9a-fA-F]{8}-[0-9a-fA-F-]{27})\)")


class ActiveConnectionState(Enum):
    """Activation state of a connection profile."""

    UNKNOWN = "unknown"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    DEACTIVATING = "deactivating"
    DEACTIVATED = "deactivated"


class Connectivity(Enum):
    """NetworkManager's view of internet reachability."""

    UNKNOWN = "unknown"
    NONE = "none"
    PORTAL = "portal"
    LIMITED = "limited"
    FULL = "full"


@dataclass(frozen=True)
class RawAccessPoint:
    """An access point exactly as listed by the service."""

    ssid: str
    bssid: str
    signal: str
    security: str
    wpa_flags: str
    rsn_flags: str


@dataclass(frozen=True)
class ActiveConnection:
    """Handle to a profile that has been asked to activate."""

    uuid: str
    name: str


@dataclass(frozen=True)
class ConnectionProfile:
    """A stored wireless connection profile."""

    uuid: str
    name: str
    ssid: str


def split_terse(line: str) -> list[str]:
    """Split one line of `nmcli -t` output into fields.

    nmcli escapes ':' and '\\' inside values with a backslash.
    """
    fields: list[str] = []
    current: list[str] = []
    escaped = False
    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ":":
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def settings_to_args(settings: dict[str, dict[str, Any]]) -> list[str]:
    """Render nested connection settings as `nmcli connection add` arguments.

    The `connection` section's type, id and interface-name map onto the
    dedicated `type`, `con-name` and `ifname` arguments; every other key
    becomes a `<setting>.<property> <value>` pair.

    Args:
        settings: {setting name: {property: value}}

    Returns:
        Argument list following `nmcli connection add`
    """
    connection = dict(settings.get("connection", {}))
    args = ["type", _format_value(connection.pop("type", "802-11-wireless"))]
    if "id" in connection:
        args.extend(["con-name", _format_value(connection.pop("id"))])
    if "interface-name" in connection:
        args.extend(["ifname", _format_value(connection.pop("interface-name"))])
    for key, value in connection.items():
        args.extend([f"connection.{key}", _format_value(value)])

    for section, values in settings.items():
        if section == "connection":
            continue
        for key, value in values.items():
            args.extend([f"{section}.{key}", _format_value(value)])
    return args


def _redact(args: tuple[str, ...]) -> list[str]:
    redacted = list(args)
    for i, arg in enumerate(redacted[:-1]):
        if arg.rsplit(".", 1)[-1] in SECRET_KEYS:
            redacted[i + 1] = "******"
    return redacted


class NetworkManagerClient:
    """Asynchronous NetworkManager client backed by nmcli.

    Usage:
        client = NetworkManagerClient()
        await client.ensure_running()
        device = await client.find_wifi_device()
        aps = await client.list_access_points(device)
    """

    def __init__(self, executable: str = "nmcli", timeout: float = 30.0) -> None:
        """Initialize client.

        Args:
            executable: nmcli binary
            timeout: Per-command timeout in seconds
        """
        self._executable = executable
        self._timeout = timeout

    async def _run_nmcli(self, *args: str, check: bool = True) -> str:
        """Run nmcli command safely.

        Args:
            *args: nmcli arguments
            check: Raise on non-zero exit

        Returns:
            Command stdout

        Raises:
            NetworkServiceError: If nmcli cannot be executed
            NetworkError: If command fails or times out
        """
        logger.debug("Running: nmcli %s", " ".join(_redact(args)))

        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NetworkServiceError("Cannot execute nmcli", cause=e)

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise NetworkError("nmcli command timed out", details={"command": args[:3]})

        if check and proc.returncode != 0:
            error_msg = stderr.decode().strip() if stderr else "Unknown error"
            raise NetworkError(
                f"nmcli failed: {error_msg}",
                details={"command": args[:3], "returncode": proc.returncode},
            )

        return stdout.decode().strip() if stdout else ""

    async def _terse(self, *args: str) -> list[list[str]]:
        output = await self._run_nmcli("-t", *args)
        return [split_terse(line) for line in output.splitlines() if line]

    async def ensure_running(self) -> None:
        """Verify the NetworkManager service is reachable.

        Raises:
            NetworkServiceError: If NetworkManager is not running
        """
        try:
            output = await self._run_nmcli("-t", "-f", "RUNNING", "general")
        except NetworkServiceError:
            raise
        except NetworkError as e:
            raise NetworkServiceError("NetworkManager is not reachable", cause=e)
        if output.strip() != "running":
            raise NetworkServiceError("NetworkManager is not running", details={"state": output})

    async def find_wifi_device(self, interface: str | None = None) -> str:
        """Find the managed wireless device.

        Args:
            interface: Restrict the search to this interface name

        Returns:
            Device (interface) name

        Raises:
            DeviceNotFoundError: If no managed wireless device exists
        """
        for fields in await self._terse("-f", "DEVICE,TYPE,STATE", "device", "status"):
            if len(fields) < 3:
                continue
            device, dev_type, state = fields[0], fields[1], fields[2]
            if dev_type != "wifi" or state == "unmanaged":
                continue
            if interface and device != interface:
                continue
            return device

        raise DeviceNotFoundError(
            "could not find wifi device", details={"interface": interface or "any"}
        )

    async def list_access_points(self, device: str) -> list[RawAccessPoint]:
        """List the access points currently visible to a device.

        Entries that cannot be parsed are logged and skipped.
        """
        access_points: list[RawAccessPoint] = []
        rows = await self._terse(
            "-f",
            "SSID,BSSID,SIGNAL,SECURITY,WPA-FLAGS,RSN-FLAGS",
            "device",
            "wifi",
            "list",
            "ifname",
            device,
        )
        for fields in rows:
            if len(fields) != 6:
                logger.error("Skipping malformed access point entry (%d fields)", len(fields))
                continue
            access_points.append(RawAccessPoint(*fields))
        return access_points

    async def list_wifi_profiles(self) -> list[ConnectionProfile]:
        """List stored wireless connection profiles with their SSIDs."""
        profiles: list[ConnectionProfile] = []
        for fields in await self._terse("-f", "UUID,TYPE,NAME", "connection", "show"):
            if len(fields) < 3 or fields[1] != "802-11-wireless":
                continue
            uuid, name = fields[0], fields[2]
            ssid = await self._run_nmcli(
                "-g", "802-11-wireless.ssid", "connection", "show", "uuid", uuid
            )
            profiles.append(ConnectionProfile(uuid=uuid, name=name, ssid=ssid))
        return profiles

    async def add_and_activate(
        self,
        settings: dict[str, dict[str, Any]],
        device: str,
        access_point: str | None = None,
    ) -> ActiveConnection:
        """Add a connection profile and request its activation.

        Activation is requested without waiting; poll
        :meth:`get_active_state` for the outcome. If the activation request
        is rejected or cancelled, or the new profile cannot be identified,
        the profile is deleted again.

        Args:
            settings: Connection settings
            device: Device to activate on
            access_point: BSSID to bind a client connection to

        Returns:
            Handle to the activating connection
        """
        name = str(settings.get("connection", {}).get("id", ""))
        output = await self._run_nmcli("connection", "add", *settings_to_args(settings))
        match = _UUID_PATTERN.search(output)
        if not match:
            if name:
                await self._run_nmcli("connection", "delete", "id", name, check=False)
            raise NetworkError("Cannot parse new connection uuid", details={"output": output})

        connection = ActiveConnection(uuid=match.group(1), name=name)

        up_args = ["--wait", "0", "connection", "up", "uuid", connection.uuid, "ifname", device]
        if access_point:
            up_args.extend(["ap", access_point])

        try:
            await self._run_nmcli(*up_args)
        except (NetworkError, asyncio.CancelledError):
            await self._run_nmcli("connection", "delete", "uuid", connection.uuid, check=False)
            raise

        logger.debug("Activation requested for %s (%s)", name, connection.uuid)
        return connection

    async def deactivate(self, connection: ActiveConnection) -> None:
        """Deactivate an active connection."""
        await self._run_nmcli("connection", "down", "uuid", connection.uuid)

    async def delete(self, uuid: str) -> None:
        """Delete a connection profile."""
        await self._run_nmcli("connection", "delete", "uuid", uuid)

    async def get_active_state(self, connection: ActiveConnection) -> ActiveConnectionState:
        """Read the activation state of a connection.

        Inactive or vanished profiles report no state at all.
        """
        output = await self._run_nmcli(
            "-g", "GENERAL.STATE", "connection", "show", "uuid", connection.uuid, check=False
        )
        try:
            return ActiveConnectionState(output.strip().lower())
        except ValueError:
            return ActiveConnectionState.UNKNOWN

    async def get_connectivity(self) -> Connectivity:
        """Read the last connectivity state NetworkManager determined."""
        output = await self._run_nmcli("networking", "connectivity")
        try:
            return Connectivity(output.strip().lower())
        except ValueError:
            return Connectivity.UNKNOWN
