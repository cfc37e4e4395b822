from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from models.enums import VehicleStatus
from schemas.common import CamelModel


class VehicleCreate(CamelModel):
    name: str = Field(..., min_length=1)
    plate_number: str = Field(..., min_length=1)
    current_odometer_km: int = Field(0, ge=0)
    vehicle_type: str = Field("Sedan", min_length=1)


class VehicleStatusUpdate(CamelModel):
    status: VehicleStatus

    @field_validator('status')
    def not_in_trip(cls, v):
        # In-Trip is owned by the allocation engine
        if v == VehicleStatus.IN_TRIP:
            raise ValueError('status must be Free or Maintenance')
        return v


class VehicleOut(CamelModel):
    id: int
    name: str
    plate_number: str
    current_odometer_km: int
    vehicle_type: str
    is_available: bool
    status: VehicleStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VehicleCreated(CamelModel):
    message: str
    car: VehicleOut


class VehicleStatusChanged(CamelModel):
    message: str
    car: VehicleOut
