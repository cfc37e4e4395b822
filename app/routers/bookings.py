from typing import List

from fastapi import APIRouter, Depends, Request, status

from middleware.rate_limit import BOOKING_RATE_LIMIT, limiter
from models.enums import BookingType
from routers.dependencies import get_booking_service
from schemas.booking import (
    AllocateRequest,
    BookingCreated,
    BookingOut,
    ChangeRequest,
    EmployeeBookingCreate,
    EndTripRequest,
    ForceEndRequest,
    GuestBookingCreate,
    GuestInfoUpdate,
    RejectRequest,
    StartTripRequest,
    TransitionResponse,
)
from services.booking_service import BookingService, TransitionResult

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _transition_response(message: str, result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        message=message,
        booking=BookingOut.model_validate(result.booking),
        warning=result.warning,
    )


@router.post("/employee", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(BOOKING_RATE_LIMIT)
async def create_employee_booking(
    request: Request,
    payload: EmployeeBookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.create(payload, BookingType.EMPLOYEE)
    return BookingCreated(
        message="Employee booking submitted",
        booking_id=result.booking.id,
        warning=result.warning,
    )


@router.post("/guest", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(BOOKING_RATE_LIMIT)
async def create_guest_booking(
    request: Request,
    payload: GuestBookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.create(payload, BookingType.GUEST)
    return BookingCreated(
        message="Guest booking submitted",
        booking_id=result.booking.id,
        warning=result.warning,
    )


@router.get("", response_model=List[BookingOut])
async def list_bookings(service: BookingService = Depends(get_booking_service)):
    """All bookings, newest first."""
    return await service.list_bookings()


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
    return await service.get_booking(booking_id)


@router.put("/approver/allocate/{booking_id}", response_model=TransitionResponse)
async def allocate_vehicle(
    booking_id: int,
    payload: AllocateRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.allocate(
        booking_id,
        vehicle_id=payload.vehicle_id,
        vehicle_name=payload.vehicle_name,
        vehicle_number=payload.vehicle_number,
        vehicle_type=payload.vehicle_type,
    )
    return _transition_response("Car allocated", result)


@router.put("/approver/reject/{booking_id}", response_model=TransitionResponse)
async def reject_booking(
    booking_id: int,
    payload: RejectRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.reject(booking_id, payload.admin_comments)
    return _transition_response("Booking rejected", result)


@router.put("/driver/start-trip/{booking_id}", response_model=TransitionResponse)
async def start_trip(
    booking_id: int,
    payload: StartTripRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.start_trip(
        booking_id,
        start_time=payload.start_time,
        start_odometer=payload.start_odometer,
        start_point=payload.start_point,
    )
    return _transition_response("Trip started", result)


@router.put("/driver/end-trip/{booking_id}", response_model=TransitionResponse)
async def end_trip(
    booking_id: int,
    payload: EndTripRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.end_trip(
        booking_id,
        end_time=payload.end_time,
        end_odometer=payload.end_odometer,
        vehicle_id=payload.vehicle_id,
        drop_point=payload.drop_point,
    )
    return _transition_response("Trip completed", result)


@router.put("/driver/request-change/{booking_id}", response_model=TransitionResponse)
async def request_change(
    booking_id: int,
    payload: ChangeRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.request_change(booking_id, payload.reason)
    return _transition_response("Change requested", result)


@router.put("/driver/update-pretrip/{booking_id}", response_model=TransitionResponse)
async def update_guest_info(
    booking_id: int,
    payload: GuestInfoUpdate,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.update_guest_info(booking_id, payload.guest_name, payload.num_guests)
    return _transition_response("Guest details updated", result)


@router.put("/admin/booking/{booking_id}/force-end", response_model=TransitionResponse)
async def force_end_trip(
    booking_id: int,
    payload: ForceEndRequest,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.force_end_trip(booking_id, payload.admin_comments)
    return _transition_response("Trip force-ended", result)
