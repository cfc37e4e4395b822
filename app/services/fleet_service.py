import logging
from typing import List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.enums import VehicleStatus
from models.vehicle import Vehicle
from schemas.vehicle import VehicleCreate
from services.exceptions import NotFoundOrAlreadyActioned, ResourceConflict, ValidationError
from services.unit_of_work import atomic

logger = logging.getLogger(__name__)


class FleetService:
    """
    Vehicle registry.

    Availability is owned by the booking service while a vehicle is
    In-Trip; this service only moves vehicles between Free and
    Maintenance, and refuses to touch one that is in a trip.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_vehicles(self, show_all: bool = False) -> List[Vehicle]:
        """
        Lists vehicles ordered by name.

        Args:
            show_all (bool): Include In-Trip and Maintenance vehicles.
                By default only vehicles that can be allocated are returned.

        Returns:
            List[Vehicle]: Matching vehicles
        """
        stmt = select(Vehicle).order_by(Vehicle.name, Vehicle.id)
        if not show_all:
            stmt = stmt.where(
                Vehicle.is_available == True,  # noqa: E712
                Vehicle.status == VehicleStatus.FREE,
            )
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.db.get(Vehicle, vehicle_id, populate_existing=True)
        if vehicle is None:
            raise NotFoundOrAlreadyActioned(f"Vehicle {vehicle_id} not found.")
        return vehicle

    async def add_vehicle(self, data: VehicleCreate) -> Vehicle:
        """
        Registers a vehicle as Free and available.

        Raises:
            ResourceConflict: Another vehicle already uses this plate number
        """
        async with atomic(self.db):
            vehicle = Vehicle(
                name=data.name,
                plate_number=data.plate_number,
                current_odometer_km=data.current_odometer_km,
                vehicle_type=data.vehicle_type,
                is_available=True,
                status=VehicleStatus.FREE,
            )
            self.db.add(vehicle)
            try:
                await self.db.flush()
            except IntegrityError as e:
                raise ResourceConflict(
                    f"A vehicle with plate number {data.plate_number} already exists."
                ) from e
            vehicle_id = vehicle.id

        logger.info(f"Vehicle {vehicle_id} ({data.plate_number}) added to the fleet")
        return await self.get_vehicle(vehicle_id)

    async def set_status(self, vehicle_id: int, status: VehicleStatus) -> Vehicle:
        """
        Moves a vehicle between Free and Maintenance.

        Raises:
            ValidationError: ``status`` is In-Trip, which only allocation may set
            NotFoundOrAlreadyActioned: The vehicle does not exist
            ResourceConflict: The vehicle is currently In-Trip
        """
        if status == VehicleStatus.IN_TRIP:
            raise ValidationError("Vehicle status can only be set to Free or Maintenance.", "status")

        async with atomic(self.db):
            result = await self.db.execute(
                update(Vehicle)
                .where(Vehicle.id == vehicle_id, Vehicle.status != VehicleStatus.IN_TRIP)
                .values(status=status, is_available=status == VehicleStatus.FREE)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                exists = await self.db.scalar(select(Vehicle.id).where(Vehicle.id == vehicle_id))
                if exists is None:
                    raise NotFoundOrAlreadyActioned(f"Vehicle {vehicle_id} not found.")
                raise ResourceConflict(
                    f"Vehicle {vehicle_id} is In-Trip until its trip ends."
                )

        logger.info(f"Vehicle {vehicle_id} set to {status.value}")
        return await self.get_vehicle(vehicle_id)
