from datetime import date, datetime, time
from typing import Optional

from pydantic import Field

from models.enums import BookingStatus, BookingType, JourneyType, TripType
from schemas.common import CamelModel


class BookingCreate(CamelModel):
    """Trip fields shared by every requester kind.

    The requester fields of both kinds are accepted here; the booking
    service keeps only the group matching the booking type.
    """
    from_location: str = Field(..., min_length=1)
    to_location: str = Field(..., min_length=1)
    start_date: date
    start_time: time
    end_date: Optional[date] = None
    end_time: Optional[time] = None
    trip_type: TripType
    journey_type: JourneyType
    reason_for_travel: str = Field(..., min_length=1)
    is_admin_trip: bool = False

    employee_name: Optional[str] = None
    employee_id: Optional[str] = None
    employee_email: Optional[str] = None

    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    contact_number: Optional[str] = None
    company_name: Optional[str] = None
    num_guests: Optional[int] = Field(None, ge=1)


class EmployeeBookingCreate(BookingCreate):
    employee_name: str = Field(..., min_length=1)
    employee_id: str = Field(..., min_length=1)


class GuestBookingCreate(BookingCreate):
    guest_name: str = Field(..., min_length=1)


class AllocateRequest(CamelModel):
    vehicle_id: int = Field(..., gt=0)
    vehicle_name: str = Field(..., min_length=1)
    vehicle_number: str = Field(..., min_length=1)
    vehicle_type: str = Field(..., min_length=1)


class RejectRequest(CamelModel):
    admin_comments: Optional[str] = None


class StartTripRequest(CamelModel):
    start_point: str = Field(..., min_length=1)
    start_time: time
    start_odometer: int = Field(..., ge=0)


class EndTripRequest(CamelModel):
    end_time: time
    end_odometer: int = Field(..., ge=0)
    vehicle_id: int = Field(..., gt=0)
    drop_point: str = Field(..., min_length=1)


class ChangeRequest(CamelModel):
    reason: str = Field(..., min_length=1)


class ForceEndRequest(CamelModel):
    admin_comments: Optional[str] = None


class GuestInfoUpdate(CamelModel):
    guest_name: str = Field(..., min_length=1)
    num_guests: Optional[int] = Field(None, ge=1)


class BookingOut(CamelModel):
    id: int
    booking_type: BookingType
    status: BookingStatus

    employee_name: Optional[str] = None
    employee_id: Optional[str] = None
    employee_email: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    contact_number: Optional[str] = None
    company_name: Optional[str] = None
    num_guests: Optional[int] = None

    from_location: str
    to_location: str
    start_date: date
    start_time: time
    end_date: Optional[date] = None
    end_time: Optional[time] = None
    trip_type: TripType
    journey_type: JourneyType
    reason_for_travel: str
    is_admin_trip: bool = False

    vehicle_id: Optional[int] = None
    vehicle_name: Optional[str] = None
    vehicle_number: Optional[str] = None
    vehicle_type: Optional[str] = None

    driver_start_time: Optional[time] = None
    driver_start_odometer: Optional[int] = None
    start_point: Optional[str] = None
    driver_end_time: Optional[time] = None
    driver_end_odometer: Optional[int] = None
    drop_point: Optional[str] = None

    admin_comments: Optional[str] = None
    driver_comments: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingCreated(CamelModel):
    message: str
    booking_id: int
    warning: Optional[str] = None


class TransitionResponse(CamelModel):
    message: str
    booking: BookingOut
    warning: Optional[str] = None
