import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import List, Optional

from sqlalchemy import case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

# Models
from models.booking import Booking
from models.enums import BookingStatus, BookingType, TripType, VehicleStatus
from models.vehicle import Vehicle

# Metrics
from core.metrics import track_transition

# Live relay
from realtime.relay import LiveLocationRelay
from schemas.booking import BookingCreate
from schemas.live import TripCompletedEvent

from services.exceptions import NotFoundOrAlreadyActioned, ValidationError, VehicleUnavailable
from services.notifications import NotificationEvent, Notifier, dispatch_notification
from services.state_machine import INITIAL_STATUS, TERMINAL_STATUSES, Operation, TransitionRule, rule_for
from services.unit_of_work import atomic

logger = logging.getLogger(__name__)

EMPLOYEE_FIELDS = ("employee_name", "employee_id", "employee_email")
GUEST_FIELDS = ("guest_name", "guest_email", "contact_number", "company_name", "num_guests")
FORCE_END_PREFIX = "Force-ended by admin:"


@dataclass
class TransitionResult:
    booking: Booking
    warning: Optional[str] = None


class BookingService:
    """
    Allocation engine for the booking/vehicle lifecycle.

    Every transition is one transaction spanning the booking and vehicle
    tables. Pre-conditions are never checked by a separate read: the guard
    (allowed source statuses, vehicle availability) is part of the UPDATE
    that performs the write, and the number of matched rows decides the
    outcome. Two callers racing for the same booking or vehicle therefore
    cannot both succeed; the loser sees zero rows and gets
    ``NotFoundOrAlreadyActioned`` or ``VehicleUnavailable``.

    Side effects outside the database (notifications, live relay frames)
    run only after commit and cannot undo the transition.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[Notifier] = None,
        relay: Optional[LiveLocationRelay] = None
    ):
        """
        Args:
            db (AsyncSession): Request-scoped session; each operation commits or rolls it back
            notifier (Notifier, optional): Receives lifecycle events after commit
            relay (LiveLocationRelay, optional): Receives trip completion frames
        """
        self.db = db
        self.notifier = notifier
        self.relay = relay

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_bookings(self) -> List[Booking]:
        stmt = (
            select(Booking)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_booking(self, booking_id: int) -> Booking:
        booking = await self._load(booking_id)
        if booking is None:
            raise NotFoundOrAlreadyActioned(f"Booking {booking_id} not found.")
        return booking

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    @track_transition("create")
    async def create(self, request_data: BookingCreate, booking_type: BookingType) -> TransitionResult:
        """
        Inserts a new booking in ``Pending Allocation``.

        Args:
            request_data (BookingCreate): Requester and trip fields
            booking_type (BookingType): Selects which requester group is kept;
                the other group is stored as null

        Returns:
            TransitionResult: The stored booking and an optional notification warning

        Raises:
            ValidationError: Route, schedule or requester fields are missing,
                or a round trip lacks its end date/time
        """
        values = self._booking_values(request_data, booking_type)

        async with atomic(self.db):
            booking = Booking(**values)
            self.db.add(booking)
            await self.db.flush()
            booking_id = booking.id
            booking = await self._load(booking_id)

        logger.info(f"{booking_type.value} booking {booking_id} created, awaiting allocation")
        warning = await dispatch_notification(self.notifier, NotificationEvent.BOOKING_REQUESTED, booking)
        return TransitionResult(booking, warning)

    @track_transition("allocate")
    async def allocate(
        self,
        booking_id: int,
        vehicle_id: int,
        vehicle_name: str,
        vehicle_number: str,
        vehicle_type: str
    ) -> TransitionResult:
        """
        Assigns a free vehicle to a pending (or change-requested) booking.

        The booking is claimed first, then the vehicle; if the vehicle is no
        longer available the booking claim is rolled back with it.

        Raises:
            NotFoundOrAlreadyActioned: The booking is missing or not awaiting allocation
            VehicleUnavailable: The vehicle is missing, in a trip or in maintenance
        """
        rule = rule_for(Operation.ALLOCATE)

        async with atomic(self.db):
            matched = await self._guarded_update(
                booking_id,
                rule,
                vehicle_id=vehicle_id,
                vehicle_name=vehicle_name,
                vehicle_number=vehicle_number,
                vehicle_type=vehicle_type,
                driver_comments=None,  # a new allocation clears the previous change reason
            )
            if matched == 0:
                raise await self._not_actioned(booking_id, rule)

            reserved = await self.db.execute(
                update(Vehicle)
                .where(
                    Vehicle.id == vehicle_id,
                    Vehicle.is_available == True,  # noqa: E712
                    Vehicle.status == VehicleStatus.FREE,
                )
                .values(is_available=False, status=VehicleStatus.IN_TRIP)
                .execution_options(synchronize_session=False)
            )
            if reserved.rowcount == 0:
                raise VehicleUnavailable(
                    f"Vehicle {vehicle_id} is no longer available."
                )

            booking = await self._load(booking_id)

        logger.info(f"Booking {booking_id} allocated vehicle {vehicle_id}")
        warning = await dispatch_notification(self.notifier, NotificationEvent.CAR_ALLOCATED, booking)
        return TransitionResult(booking, warning)

    @track_transition("reject")
    async def reject(self, booking_id: int, comments: Optional[str] = None) -> TransitionResult:
        """Rejects a booking that is still pending allocation. No vehicle is involved."""
        rule = rule_for(Operation.REJECT)

        async with atomic(self.db):
            matched = await self._guarded_update(booking_id, rule, admin_comments=comments)
            if matched == 0:
                raise await self._not_actioned(booking_id, rule)
            booking = await self._load(booking_id)

        logger.info(f"Booking {booking_id} rejected")
        warning = await dispatch_notification(self.notifier, NotificationEvent.BOOKING_REJECTED, booking)
        return TransitionResult(booking, warning)

    @track_transition("start_trip")
    async def start_trip(
        self,
        booking_id: int,
        start_time: time,
        start_odometer: int,
        start_point: str
    ) -> TransitionResult:
        """Records the driver's start telemetry. The vehicle is already In-Trip."""
        rule = rule_for(Operation.START_TRIP)

        async with atomic(self.db):
            matched = await self._guarded_update(
                booking_id,
                rule,
                driver_start_time=start_time,
                driver_start_odometer=start_odometer,
                start_point=start_point,
            )
            if matched == 0:
                raise await self._not_actioned(booking_id, rule)
            booking = await self._load(booking_id)

        logger.info(f"Trip started for booking {booking_id}")
        return TransitionResult(booking)

    @track_transition("end_trip")
    async def end_trip(
        self,
        booking_id: int,
        end_time: time,
        end_odometer: int,
        vehicle_id: Optional[int],
        drop_point: str
    ) -> TransitionResult:
        """
        Completes a started trip and frees its vehicle.

        The vehicle's odometer is set to ``end_odometer``. After commit the
        live relay is told to retire the booking's marker and the requester
        is notified.

        Raises:
            NotFoundOrAlreadyActioned: The booking is missing or not in ``Trip Started``
                (including a second call for the same trip)
            ValidationError: ``vehicle_id`` does not match the booking's vehicle,
                or the odometer went backwards
        """
        rule = rule_for(Operation.END_TRIP)

        async with atomic(self.db):
            matched = await self._guarded_update(
                booking_id,
                rule,
                driver_end_time=end_time,
                driver_end_odometer=end_odometer,
                drop_point=drop_point,
            )
            if matched == 0:
                raise await self._not_actioned(booking_id, rule)

            booking = await self._load(booking_id)
            if vehicle_id is not None and booking.vehicle_id is not None and vehicle_id != booking.vehicle_id:
                raise ValidationError(
                    f"Vehicle {vehicle_id} is not the vehicle allocated to booking {booking_id}.",
                    "vehicleId",
                )
            if booking.driver_start_odometer is not None and end_odometer < booking.driver_start_odometer:
                raise ValidationError(
                    f"End odometer {end_odometer} is below the start odometer {booking.driver_start_odometer}.",
                    "endOdometer",
                )

            held_vehicle = booking.vehicle_id or vehicle_id
            if held_vehicle is not None:
                await self._release_vehicle(held_vehicle, odometer_km=end_odometer)

        logger.info(f"Trip completed for booking {booking_id}, vehicle {held_vehicle} released")
        self._publish_completion(booking)
        warning = await dispatch_notification(self.notifier, NotificationEvent.TRIP_COMPLETED, booking)
        return TransitionResult(booking, warning)

    @track_transition("request_change")
    async def request_change(self, booking_id: int, reason: str) -> TransitionResult:
        """
        Gives the allocated vehicle back and asks the approver for another one.

        The booking row is locked before the vehicle is touched, the same
        order allocate and force-end use. The vehicle is then released and
        the booking update must match exactly one row or the whole
        transaction, release included, is rolled back.
        """
        rule = rule_for(Operation.REQUEST_CHANGE)

        async with atomic(self.db):
            vehicle_id = await self.db.scalar(
                select(Booking.vehicle_id)
                .where(
                    Booking.id == booking_id,
                    Booking.status.in_(rule.sources),
                    Booking.vehicle_id.is_not(None),
                )
                .with_for_update()
            )
            if vehicle_id is None:
                raise await self._not_actioned(booking_id, rule)

            await self._release_vehicle(vehicle_id)

            matched = await self._guarded_update(
                booking_id,
                rule,
                Booking.vehicle_id == vehicle_id,
                driver_comments=reason,
            )
            if matched != 1:
                raise await self._not_actioned(booking_id, rule)

            booking = await self._load(booking_id)

        logger.info(f"Change requested for booking {booking_id}, vehicle {vehicle_id} released")
        warning = await dispatch_notification(self.notifier, NotificationEvent.CHANGE_REQUESTED, booking)
        return TransitionResult(booking, warning)

    @track_transition("force_end")
    async def force_end_trip(self, booking_id: int, admin_comments: Optional[str] = None) -> TransitionResult:
        """
        Administrative recovery for a trip the driver never closed.

        Completes an allocated or started booking, appends the admin note to
        any existing comments and frees the held vehicle without touching
        its odometer.
        """
        rule = rule_for(Operation.FORCE_END)
        note = f"{FORCE_END_PREFIX} {admin_comments or ''}".rstrip()

        async with atomic(self.db):
            matched = await self._guarded_update(
                booking_id,
                rule,
                admin_comments=case(
                    (or_(Booking.admin_comments.is_(None), Booking.admin_comments == ""), note),
                    else_=Booking.admin_comments + " " + note,
                ),
            )
            if matched == 0:
                raise await self._not_actioned(booking_id, rule)

            booking = await self._load(booking_id)
            if booking.vehicle_id is not None:
                await self._release_vehicle(booking.vehicle_id)

        logger.warning(f"Booking {booking_id} force-ended by admin")
        self._publish_completion(booking)
        warning = await dispatch_notification(self.notifier, NotificationEvent.TRIP_FORCE_ENDED, booking)
        return TransitionResult(booking, warning)

    @track_transition("update_guest_info")
    async def update_guest_info(
        self,
        booking_id: int,
        guest_name: str,
        num_guests: Optional[int] = None
    ) -> TransitionResult:
        """Corrects guest details before or during a trip. Status is unchanged."""
        async with atomic(self.db):
            result = await self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status.not_in(TERMINAL_STATUSES))
                .values(guest_name=guest_name, num_guests=num_guests)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                booking = await self._load(booking_id)
                if booking is None:
                    raise NotFoundOrAlreadyActioned(f"Booking {booking_id} not found.")
                raise NotFoundOrAlreadyActioned(
                    f"Booking {booking_id} is {booking.status.value} and can no longer be edited."
                )
            booking = await self._load(booking_id)

        return TransitionResult(booking)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _booking_values(self, request_data: BookingCreate, booking_type: BookingType) -> dict:
        data = request_data.model_dump()

        for field in ("from_location", "to_location", "start_date", "start_time",
                      "trip_type", "journey_type", "reason_for_travel"):
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"Missing required field: {field}", field)

        if booking_type == BookingType.EMPLOYEE:
            required, cleared = ("employee_name", "employee_id"), GUEST_FIELDS
        else:
            required, cleared = ("guest_name",), EMPLOYEE_FIELDS
        for field in required:
            if not data.get(field):
                raise ValidationError(f"Missing required field for {booking_type.value} booking: {field}", field)
        for field in cleared:
            data[field] = None

        if data["trip_type"] == TripType.ONE_WAY:
            data["end_date"] = None
            data["end_time"] = None
        else:
            if data.get("end_date") is None or data.get("end_time") is None:
                raise ValidationError("Round trips require an end date and an end time.", "end_date")
            start = datetime.combine(data["start_date"], data["start_time"])
            end = datetime.combine(data["end_date"], data["end_time"])
            if end < start:
                raise ValidationError("Round trip cannot end before it starts.", "end_date")

        data["booking_type"] = booking_type
        data["status"] = INITIAL_STATUS
        return data

    async def _load(self, booking_id: int) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _guarded_update(self, booking_id: int, rule: TransitionRule, *criteria, **values) -> int:
        """Moves the booking to ``rule.target`` only if it is in one of ``rule.sources``."""
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.in_(rule.sources), *criteria)
            .values(status=rule.target, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _not_actioned(self, booking_id: int, rule: TransitionRule) -> NotFoundOrAlreadyActioned:
        current: Optional[BookingStatus] = await self.db.scalar(
            select(Booking.status).where(Booking.id == booking_id)
        )
        if current is None:
            return NotFoundOrAlreadyActioned(f"Booking {booking_id} not found.")
        if rule.allows(current):
            # status fits; a row guard such as the held vehicle did not
            return NotFoundOrAlreadyActioned(
                f"Booking {booking_id} is {current.value} but was not in a state "
                f"to {rule.operation.value}; it may have been actioned concurrently."
            )
        return NotFoundOrAlreadyActioned(
            f"Booking {booking_id} is {current.value}; "
            f"{rule.operation.value} requires {rule.describe_sources()}."
        )

    async def _release_vehicle(self, vehicle_id: int, odometer_km: Optional[int] = None) -> None:
        values = {"is_available": True, "status": VehicleStatus.FREE}
        if odometer_km is not None:
            values["current_odometer_km"] = odometer_km

        result = await self.db.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"Vehicle {vehicle_id} referenced by a booking does not exist")

    def _publish_completion(self, booking: Booking) -> None:
        if self.relay is None:
            return
        self.relay.publish_completion(
            TripCompletedEvent(
                booking_id=booking.id,
                drop_point=booking.drop_point,
                vehicle_name=booking.vehicle_name,
            )
        )
