from typing import List

from fastapi import APIRouter, Depends, Query, status

from routers.dependencies import get_fleet_service
from schemas.vehicle import VehicleCreate, VehicleCreated, VehicleOut, VehicleStatusChanged, VehicleStatusUpdate
from services.fleet_service import FleetService

# Registered before the bookings router so /bookings/cars is not read as a booking id
router = APIRouter(prefix="/bookings", tags=["fleet"])


@router.post("/cars", response_model=VehicleCreated, status_code=status.HTTP_201_CREATED)
async def add_vehicle(payload: VehicleCreate, service: FleetService = Depends(get_fleet_service)):
    vehicle = await service.add_vehicle(payload)
    return VehicleCreated(message="Car added", car=VehicleOut.model_validate(vehicle))


@router.get("/cars", response_model=List[VehicleOut])
async def list_vehicles(
    show_all: bool = Query(False, alias="showAll"),
    service: FleetService = Depends(get_fleet_service),
):
    """Allocatable vehicles, or the whole fleet with ``showAll=true``."""
    return await service.list_vehicles(show_all=show_all)


@router.put("/car/{vehicle_id}/status", response_model=VehicleStatusChanged)
async def set_vehicle_status(
    vehicle_id: int,
    payload: VehicleStatusUpdate,
    service: FleetService = Depends(get_fleet_service),
):
    vehicle = await service.set_status(vehicle_id, payload.status)
    return VehicleStatusChanged(
        message=f"Car status updated to {vehicle.status.value}",
        car=VehicleOut.model_validate(vehicle),
    )
