import asyncio
import itertools
from typing import Any

import pytest

from wificonnect.core.config import PortalConfig
from wificonnect.core.errors import DeviceNotFoundError, NetworkError, ProcessError
from wificonnect.network.nmcli import (
    ActiveConnection,
    ActiveConnectionState,
    ConnectionProfile,
    Connectivity,
    RawAccessPoint,
)

WPA2_FLAGS = "pair_ccmp group_ccmp psk"


def raw_ap(
    ssid: str,
    signal: int | str,
    *,
    security: str = "WPA2",
    wpa_flags: str = "(none)",
    rsn_flags: str = WPA2_FLAGS,
    bssid: str | None = None,
) -> RawAccessPoint:
    return RawAccessPoint(
        ssid=ssid,
        bssid=bssid or f"AA:BB:CC:DD:EE:{sum(ssid.encode()) % 256:02X}",
        signal=str(signal),
        security=security,
        wpa_flags=wpa_flags,
        rsn_flags=rsn_flags,
    )


def open_ap(ssid: str, signal: int) -> RawAccessPoint:
    return raw_ap(ssid, signal, security="", rsn_flags="(none)")


class FakeNetworkService:
    """In-memory stand-in for NetworkManagerClient."""

    def __init__(self, access_points: list[RawAccessPoint] | None = None) -> None:
        # Each scan returns the next entry; the last one repeats
        self.scans: list[list[RawAccessPoint]] = [list(access_points or [])]
        self.scan_calls = 0
        self.devices = ["wlan0"]
        self.running = True
        self.profiles: dict[str, dict[str, Any]] = {}
        self.added: list[tuple[dict[str, Any], str, str | None]] = []
        self.deleted: list[str] = []
        self.deactivated: list[str] = []
        # Profiles (by connection name) whose deletion fails
        self.undeletable: set[str] = set()
        self.states: dict[str, ActiveConnectionState] = {}
        self.connectivity = Connectivity.FULL
        self.connectivity_error: NetworkError | None = None
        # Activation polls for these connection names block on the gate
        self.gated: set[str] = set()
        self.activation_gate = asyncio.Event()
        self.gate_waiting = False
        self._uuids = (f"00000000-0000-0000-0000-{n:012d}" for n in itertools.count(1))

    def set_access_points(self, *scans: list[RawAccessPoint]) -> None:
        self.scans = [list(scan) for scan in scans]

    def profile_names(self) -> list[str]:
        return [settings["connection"]["id"] for settings in self.profiles.values()]

    def add_stored_profile(self, name: str, ssid: str) -> str:
        uuid = next(self._uuids)
        self.profiles[uuid] = {"connection": {"id": name}, "802-11-wireless": {"ssid": ssid}}
        return uuid

    async def ensure_running(self) -> None:
        if not self.running:
            raise NetworkError("NetworkManager is not running")

    async def find_wifi_device(self, interface: str | None = None) -> str:
        for device in self.devices:
            if interface is None or device == interface:
                return device
        raise DeviceNotFoundError("could not find wifi device")

    async def list_access_points(self, device: str) -> list[RawAccessPoint]:
        self.scan_calls += 1
        if len(self.scans) > 1:
            return self.scans.pop(0)
        return list(self.scans[0])

    async def list_wifi_profiles(self) -> list[ConnectionProfile]:
        return [
            ConnectionProfile(
                uuid=uuid,
                name=settings["connection"]["id"],
                ssid=settings.get("802-11-wireless", {}).get("ssid", ""),
            )
            for uuid, settings in self.profiles.items()
        ]

    async def add_and_activate(
        self, settings: dict[str, Any], device: str, access_point: str | None = None
    ) -> ActiveConnection:
        uuid = next(self._uuids)
        self.profiles[uuid] = settings
        self.added.append((settings, device, access_point))
        return ActiveConnection(uuid=uuid, name=settings["connection"]["id"])

    async def deactivate(self, connection: ActiveConnection) -> None:
        self.deactivated.append(connection.uuid)

    async def delete(self, uuid: str) -> None:
        if uuid not in self.profiles:
            raise NetworkError("unknown connection", details={"uuid": uuid})
        if self.profiles[uuid]["connection"]["id"] in self.undeletable:
            raise NetworkError("nmcli failed: connection is busy", details={"uuid": uuid})
        del self.profiles[uuid]
        self.deleted.append(uuid)

    async def get_active_state(self, connection: ActiveConnection) -> ActiveConnectionState:
        if connection.name in self.gated:
            self.gate_waiting = True
            await self.activation_gate.wait()
        return self.states.get(connection.name, ActiveConnectionState.ACTIVATED)

    async def get_connectivity(self) -> Connectivity:
        if self.connectivity_error is not None:
            raise self.connectivity_error
        return self.connectivity


class FakeSupervisor:
    """Records helper process requests instead of spawning anything."""

    def __init__(self) -> None:
        self.started: list[tuple[str, str, list[str]]] = []
        self.stopped: list[str] = []
        self.stop_all_calls = 0
        self.fail_start = False

    async def start(self, name: str, executable: str, args: list[str]) -> None:
        if self.fail_start:
            raise ProcessError("failed to start process", details={"name": name})
        self.started.append((name, executable, list(args)))

    async def stop(self, name: str, drain_timeout: float | None = None) -> None:
        self.stopped.append(name)

    async def stop_all(self, drain_timeout: float | None = None) -> None:
        self.stop_all_calls += 1


class FakeWebService:
    def __init__(self, *args, **kwargs) -> None:
        self.events: list[str] = []

    async def start(self) -> None:
        self.events.append("start")

    async def stop(self) -> None:
        self.events.append("stop")


@pytest.fixture
def fake_service() -> FakeNetworkService:
    return FakeNetworkService([raw_ap("Home", 80), open_ap("Cafe", 40)])


@pytest.fixture
def fake_supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def portal_config() -> PortalConfig:
    return PortalConfig()


@pytest.fixture
def instant_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Make asyncio.sleep return immediately and record requested delays."""
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay: float, result: Any = None) -> Any:
        delays.append(delay)
        await real_sleep(0)
        return result

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays
