"""Network orchestration module.

Provides:
- NetworkManagerClient for nmcli-based NetworkManager access
- AccessPointScanner and security classification
- HotspotController for the portal access point
- ConnectionOrchestrator for joining the chosen network
- ProcessSupervisor for dnsmasq
- Portal tying them together
"""

from .connector import ConnectionOrchestrator, build_credentials
from .hotspot import HotspotController, dnsmasq_args
from .nmcli import NetworkManagerClient
from .portal import Portal
from .process import ProcessSupervisor
from .scanner import AccessPoint, AccessPointScanner
from .security import Security, classify_security
from .state import HotspotState, PortalState

__all__ = [
    "AccessPoint",
    "AccessPointScanner",
    "ConnectionOrchestrator",
    "HotspotController",
    "HotspotState",
    "NetworkManagerClient",
    "Portal",
    "PortalState",
    "ProcessSupervisor",
    "Security",
    "build_credentials",
    "classify_security",
    "dnsmasq_args",
]
