"""WiFi Connect for headless devices.

Provisions network connectivity by temporarily running a WiFi access
point with a captive portal:
- Access point discovery and security classification
- Hotspot lifecycle with dnsmasq for DHCP/DNS
- Connection attempts with fallback to the portal
- REST API and static UI for the portal
"""

__version__ = "1.0.0"
