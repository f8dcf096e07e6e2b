"""Access point security classification.

Decodes the privacy, WPA and RSN capability flags NetworkManager reports
for an access point into a :class:`Security` value. Classification is
additive: an AP can be both WPA2 and enterprise at once.
"""

import logging
from enum import IntFlag
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .nmcli import RawAccessPoint

logger = logging.getLogger(__name__)


class ApFlags(IntFlag):
    """General 802.11 capability flags (NM80211ApFlags)."""

    NONE = 0x0000
    PRIVACY = 0x0001
    WPS = 0x0002
    WPS_PBC = 0x0004
    WPS_PIN = 0x0008


class ApSecurityFlags(IntFlag):
    """Security and key management flags (NM80211ApSecurityFlags)."""

    NONE = 0x0000
    PAIR_WEP40 = 0x0001
    PAIR_WEP104 = 0x0002
    PAIR_TKIP = 0x0004
    PAIR_CCMP = 0x0008
    GROUP_WEP40 = 0x0010
    GROUP_WEP104 = 0x0020
    GROUP_TKIP = 0x0040
    GROUP_CCMP = 0x0080
    KEY_MGMT_PSK = 0x0100
    KEY_MGMT_802_1X = 0x0200
    KEY_MGMT_SAE = 0x0400
    KEY_MGMT_OWE = 0x0800
    KEY_MGMT_OWE_TM = 0x1000
    KEY_MGMT_EAP_SUITE_B_192 = 0x2000


class Security(IntFlag):
    """Normalized security classification of an access point."""

    NONE = 0
    WEP = 1
    WPA = 2
    WPA2 = 4
    ENTERPRISE = 8

    @property
    def label(self) -> str:
        """Display name of the highest-priority flag that is set."""
        for flag, name in _LABELS:
            if flag in self:
                return name
        return "none"


# Display priority, highest first
_LABELS = (
    (Security.ENTERPRISE, "enterprise"),
    (Security.WPA2, "wp2"),
    (Security.WPA, "wpa"),
    (Security.WEP, "wep"),
)

# nmcli renders ApSecurityFlags as space separated tokens
_FLAG_TOKENS = {
    "pair_wep40": ApSecurityFlags.PAIR_WEP40,
    "pair_wep104": ApSecurityFlags.PAIR_WEP104,
    "pair_tkip": ApSecurityFlags.PAIR_TKIP,
    "pair_ccmp": ApSecurityFlags.PAIR_CCMP,
    "group_wep40": ApSecurityFlags.GROUP_WEP40,
    "group_wep104": ApSecurityFlags.GROUP_WEP104,
    "group_tkip": ApSecurityFlags.GROUP_TKIP,
    "group_ccmp": ApSecurityFlags.GROUP_CCMP,
    "psk": ApSecurityFlags.KEY_MGMT_PSK,
    "802.1x": ApSecurityFlags.KEY_MGMT_802_1X,
    "sae": ApSecurityFlags.KEY_MGMT_SAE,
    "owe": ApSecurityFlags.KEY_MGMT_OWE,
    "owe_transition_mode": ApSecurityFlags.KEY_MGMT_OWE_TM,
    "eap_suite_b_192": ApSecurityFlags.KEY_MGMT_EAP_SUITE_B_192,
}


def classify_security(
    flags: ApFlags, wpa_flags: ApSecurityFlags, rsn_flags: ApSecurityFlags
) -> Security:
    """Classify an access point from its raw capability flags.

    Args:
        flags: General AP flags (only the privacy bit matters)
        wpa_flags: WPA capability flags
        rsn_flags: RSN (WPA2) capability flags

    Returns:
        Union of every matching security flag
    """
    security = Security.NONE

    # Legacy APs advertise WEP through the privacy bit alone
    if ApFlags.PRIVACY in flags and not wpa_flags and not rsn_flags:
        security |= Security.WEP

    if wpa_flags:
        security |= Security.WPA

    if rsn_flags:
        security |= Security.WPA2

    if ApSecurityFlags.KEY_MGMT_802_1X in wpa_flags or ApSecurityFlags.KEY_MGMT_802_1X in rsn_flags:
        security |= Security.ENTERPRISE

    return security


def parse_security_flags(text: str) -> ApSecurityFlags:
    """Decode nmcli's textual WPA-FLAGS/RSN-FLAGS column.

    Args:
        text: e.g. "pair_ccmp group_ccmp psk" or "(none)"

    Returns:
        Decoded flags; unknown tokens are ignored
    """
    flags = ApSecurityFlags.NONE
    for token in text.split():
        if token in ("(none)", "--"):
            continue
        flag = _FLAG_TOKENS.get(token.lower())
        if flag is None:
            logger.debug("Ignoring unknown security flag %r", token)
            continue
        flags |= flag
    return flags


def read_security(raw: "RawAccessPoint") -> Security:
    """Classify an access point as reported by the network service.

    nmcli does not expose the privacy bit directly; its SECURITY column is
    empty exactly when the AP advertises no protection at all.
    """
    summary = raw.security.strip()
    flags = ApFlags.PRIVACY if summary and summary != "--" else ApFlags.NONE
    return classify_security(
        flags,
        parse_security_flags(raw.wpa_flags),
        parse_security_flags(raw.rsn_flags),
    )
