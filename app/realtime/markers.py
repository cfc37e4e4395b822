"""
Observer-side model of the live tracking map.

Drivers report start and drop points as ``"Lat: <lat>, Lng: <lng>"``.
:class:`LiveMap` applies relay frames the way an admin view does: live
markers are keyed by booking and overwritten by every push; a completion
frame removes the live marker and, when the drop point parses, pins a
completed marker at that coordinate.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from schemas.live import LOCATION_UPDATE, LOCATION_UPDATE_COMPLETE

logger = logging.getLogger(__name__)

Coordinates = Tuple[float, float]

_POINT_RE = re.compile(r"Lat:\s*(-?\d+(?:\.\d+)?),\s*Lng:\s*(-?\d+(?:\.\d+)?)")


def parse_point(value: Optional[str]) -> Optional[Coordinates]:
    """Parse a ``"Lat: x, Lng: y"`` string; returns None when it is not one."""
    if not value:
        return None
    match = _POINT_RE.search(value)
    if not match:
        return None
    lat, lng = float(match.group(1)), float(match.group(2))
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return lat, lng


@dataclass
class Marker:
    booking_id: int
    position: Coordinates
    vehicle_name: Optional[str]
    status: str


class LiveMap:
    """Live and completed markers, both keyed by booking id."""

    def __init__(self):
        self.live: Dict[int, Marker] = {}
        self.completed: Dict[int, Marker] = {}

    def apply(self, event: str, data: dict) -> None:
        if event == LOCATION_UPDATE:
            self._apply_position(data)
        elif event == LOCATION_UPDATE_COMPLETE:
            self._apply_completion(data)

    def _apply_position(self, data: dict) -> None:
        booking_id = data["bookingId"]
        lat, lng = data["position"]
        self.live[booking_id] = Marker(
            booking_id=booking_id,
            position=(float(lat), float(lng)),
            vehicle_name=data.get("vehicleName"),
            status=data.get("status", "In-Trip"),
        )

    def _apply_completion(self, data: dict) -> None:
        booking_id = data["bookingId"]
        self.live.pop(booking_id, None)

        coords = parse_point(data.get("dropPoint"))
        if coords is None:
            if data.get("dropPoint"):
                logger.warning(f"Could not parse dropPoint for booking {booking_id}: {data['dropPoint']}")
            return

        self.completed[booking_id] = Marker(
            booking_id=booking_id,
            position=coords,
            vehicle_name=data.get("vehicleName"),
            status="Completed",
        )
