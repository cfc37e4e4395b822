from typing import Annotated, Any, Dict, Literal, Optional, Tuple

from pydantic import Field

from schemas.common import CamelModel

Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]

# Wire event names
JOIN_ADMIN_ROOM = "join-admin-room"
UPDATE_LOCATION = "update-location"
JOINED = "joined"
LOCATION_UPDATE = "location-update"
LOCATION_UPDATE_COMPLETE = "location-update-complete"
ERROR = "error"


class PositionUpdate(CamelModel):
    """Full-replace position of one booking's vehicle, pushed by the driver."""
    booking_id: int = Field(..., gt=0)
    position: Tuple[Latitude, Longitude]
    vehicle_name: str = Field(..., min_length=1)
    status: Literal["In-Trip"] = "In-Trip"


class TripCompletedEvent(CamelModel):
    """Tells observers to drop the live marker and, with a position, pin the drop point."""
    booking_id: int
    drop_point: Optional[str] = None
    vehicle_name: Optional[str] = None
    position: Optional[Tuple[Latitude, Longitude]] = None


class LiveFrame(CamelModel):
    event: str
    data: Optional[Dict[str, Any]] = None
