import asyncio

import pytest

from wificonnect.core.errors import AccessPointNotFoundError
from wificonnect.network.scanner import AccessPointScanner
from wificonnect.network.security import Security

from conftest import FakeNetworkService, open_ap, raw_ap


def test_scan_sorts_by_strength_descending() -> None:
    service = FakeNetworkService([open_ap("Cafe", 40), raw_ap("Home", 80), raw_ap("Lab", 60)])
    scanner = AccessPointScanner(service, "wlan0")

    access_points = asyncio.run(scanner.scan(0))

    assert [ap.ssid for ap in access_points] == ["Home", "Lab", "Cafe"]
    assert [ap.strength for ap in access_points] == [80, 60, 40]


def test_scan_keeps_one_entry_per_ssid() -> None:
    service = FakeNetworkService(
        [
            raw_ap("Home", 40, bssid="AA:00:00:00:00:01"),
            raw_ap("Home", 70, bssid="AA:00:00:00:00:02"),
            open_ap("Cafe", 50),
        ]
    )
    scanner = AccessPointScanner(service, "wlan0")

    access_points = asyncio.run(scanner.scan(0))

    assert [ap.ssid for ap in access_points].count("Home") == 1
    home = next(ap for ap in access_points if ap.ssid == "Home")
    assert home.handle == "AA:00:00:00:00:02"


def test_scan_drops_hidden_networks() -> None:
    service = FakeNetworkService([raw_ap("", 90), raw_ap("Home", 80)])
    scanner = AccessPointScanner(service, "wlan0")

    access_points = asyncio.run(scanner.scan(0))

    assert [ap.ssid for ap in access_points] == ["Home"]


def test_scan_skips_unreadable_entries() -> None:
    service = FakeNetworkService([raw_ap("Broken", "n/a"), raw_ap("Home", 80)])
    scanner = AccessPointScanner(service, "wlan0")

    access_points = asyncio.run(scanner.scan(0))

    assert [ap.ssid for ap in access_points] == ["Home"]


def test_scan_classifies_security() -> None:
    service = FakeNetworkService([raw_ap("Home", 80), open_ap("Cafe", 40)])
    scanner = AccessPointScanner(service, "wlan0")

    access_points = asyncio.run(scanner.scan(0))

    assert [ap.security for ap in access_points] == [Security.WPA2, Security.NONE]
    assert [ap.summary() for ap in access_points] == [
        {"ssid": "Home", "security": "wp2"},
        {"ssid": "Cafe", "security": "none"},
    ]


def test_scan_retries_until_access_points_appear(instant_sleep) -> None:
    service = FakeNetworkService()
    service.set_access_points([], [], [raw_ap("Home", 80)])
    scanner = AccessPointScanner(service, "wlan0")

    access_points = asyncio.run(scanner.scan(10))

    assert [ap.ssid for ap in access_points] == ["Home"]
    assert service.scan_calls == 3
    assert instant_sleep == [2.0, 2.0]


def test_scan_gives_up_after_retry_limit(instant_sleep) -> None:
    service = FakeNetworkService([])
    scanner = AccessPointScanner(service, "wlan0")

    with pytest.raises(AccessPointNotFoundError, match="no access point found"):
        asyncio.run(scanner.scan(2))

    assert service.scan_calls == 3
    assert instant_sleep == [2.0, 2.0]


def test_find_returns_matching_access_point() -> None:
    service = FakeNetworkService([raw_ap("Home", 80, bssid="AA:00:00:00:00:01")])
    scanner = AccessPointScanner(service, "wlan0")

    access_point = asyncio.run(scanner.find("Home"))

    assert access_point.handle == "AA:00:00:00:00:01"


def test_find_raises_for_unknown_ssid() -> None:
    service = FakeNetworkService([raw_ap("Home", 80)])
    scanner = AccessPointScanner(service, "wlan0")

    with pytest.raises(AccessPointNotFoundError):
        asyncio.run(scanner.find("Elsewhere"))
