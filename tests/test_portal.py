import asyncio

import pytest

from wificonnect.core.config import PortalConfig
from wificonnect.core.errors import AccessPointNotFoundError, DeviceNotFoundError
from wificonnect.network.portal import Portal
from wificonnect.network.state import HotspotState

from conftest import FakeWebService


def _portal(config, service, supervisor) -> tuple[Portal, FakeWebService]:
    portal = Portal(config, service, "wlan0", supervisor=supervisor)
    web = FakeWebService()
    portal.attach_service(web)
    return portal, web


def test_create_resolves_device(portal_config, fake_service) -> None:
    portal = asyncio.run(Portal.create(portal_config, fake_service))

    assert portal.device == "wlan0"


def test_create_fails_without_wifi_device(fake_service) -> None:
    config = PortalConfig(interface="wlan9")

    with pytest.raises(DeviceNotFoundError):
        asyncio.run(Portal.create(config, fake_service))


def test_start_lists_networks_and_joins(
    portal_config, fake_service, fake_supervisor, instant_sleep
) -> None:
    portal, web = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        await portal.start_portal()
        networks = portal.get_access_points()
        joined = await portal.connect("Home", "password123")
        return networks, joined

    networks, joined = asyncio.run(_exercise())

    assert networks == [
        {"ssid": "Home", "security": "wp2"},
        {"ssid": "Cafe", "security": "none"},
    ]
    assert joined is True
    assert portal.provisioned.is_set()
    assert web.events == ["start"]

    settings, _, _ = fake_service.added[-1]
    assert settings["802-11-wireless-security"] == {"key-mgmt": "wpa-psk", "psk": "password123"}
    assert "802-1x" not in settings


def test_failed_connect_brings_portal_back(
    portal_config, fake_service, fake_supervisor, instant_sleep
) -> None:
    portal, web = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        await portal.start_portal()
        return await portal.connect("Elsewhere", "password123")

    joined = asyncio.run(_exercise())

    assert joined is False
    assert not portal.provisioned.is_set()
    assert portal.state.hotspot is HotspotState.CREATED
    assert web.events == ["start", "start"]


def test_close_abandons_in_flight_connect(
    portal_config, fake_service, fake_supervisor, instant_sleep
) -> None:
    fake_service.gated.add("Home")
    portal, web = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        await portal.start_portal()
        attempt = asyncio.create_task(portal.connect("Home", "password123"))
        while not fake_service.gate_waiting:
            await asyncio.sleep(0)
        await portal.close_portal()
        return await attempt

    joined = asyncio.run(_exercise())

    assert joined is False
    assert not portal.provisioned.is_set()
    assert "Home" not in fake_service.profile_names()
    assert fake_service.profiles == {}
    assert web.events == ["start", "stop"]
    assert fake_supervisor.stop_all_calls == 1


def test_connect_after_close_is_refused(
    portal_config, fake_service, fake_supervisor, instant_sleep
) -> None:
    portal, _ = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        await portal.start_portal()
        await portal.close_portal()
        return await portal.connect("Home", "password123")

    assert asyncio.run(_exercise()) is False
    assert fake_service.profiles == {}


def test_close_tears_down_hotspot(
    portal_config, fake_service, fake_supervisor, instant_sleep
) -> None:
    portal, web = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        await portal.start_portal()
        await portal.close_portal()

    asyncio.run(_exercise())

    assert portal.state.hotspot is HotspotState.CLOSED
    assert fake_service.profiles == {}
    assert fake_supervisor.stopped == ["dnsmasq"]
    assert web.events == ["start", "stop"]


def test_wait_idle_returns_after_activity_timeout(fake_service, fake_supervisor) -> None:
    config = PortalConfig(activity_timeout=1)
    portal, _ = _portal(config, fake_service, fake_supervisor)

    async def _exercise():
        await asyncio.wait_for(portal.wait_idle(poll_interval=0.05), timeout=5)

    asyncio.run(_exercise())

    assert portal.idle_seconds() >= 1


def test_wait_idle_blocks_when_disabled(portal_config, fake_service, fake_supervisor) -> None:
    portal, _ = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(portal.wait_idle(poll_interval=0.01), timeout=0.2)

    asyncio.run(_exercise())


def test_portal_that_cannot_reopen_is_marked_failed(
    portal_config, fake_service, fake_supervisor, instant_sleep
) -> None:
    portal, web = _portal(portal_config, fake_service, fake_supervisor)

    async def _exercise():
        await portal.start_portal()
        fake_service.set_access_points([])
        return await portal.connect("Home", "password123")

    joined = asyncio.run(_exercise())

    assert joined is False
    assert portal.failed.is_set()
    assert isinstance(portal.fault, AccessPointNotFoundError)
    assert portal.state.hotspot is HotspotState.CLOSED
    assert web.events == ["start"]
