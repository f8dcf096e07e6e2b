"""In-memory orchestration state shared by the portal components."""

from dataclasses import dataclass, field
from enum import Enum

from .nmcli import ActiveConnection
from .scanner import AccessPoint


class HotspotState(Enum):
    """Lifecycle of the portal access point."""

    CLOSED = "closed"
    CREATED = "created"


@dataclass
class PortalState:
    """State owned by one Portal and mutated only by its controllers.

    Attributes:
        hotspot: Whether the portal access point is up
        hotspot_connection: Active hotspot connection while created
        access_points: Networks seen when the hotspot was last created
    """

    hotspot: HotspotState = HotspotState.CLOSED
    hotspot_connection: ActiveConnection | None = None
    access_points: list[AccessPoint] = field(default_factory=list)

    @property
    def is_hotspot_created(self) -> bool:
        return self.hotspot is HotspotState.CREATED

    def mark_created(self, connection: ActiveConnection) -> None:
        self.hotspot = HotspotState.CREATED
        self.hotspot_connection = connection

    def mark_closed(self) -> None:
        self.hotspot = HotspotState.CLOSED
        self.hotspot_connection = None
