import enum


class BookingStatus(str, enum.Enum):
    PENDING_ALLOCATION = "Pending Allocation"
    CAR_ALLOCATED = "Car Allocated"
    REJECTED = "Rejected"
    TRIP_STARTED = "Trip Started"
    CHANGE_REQUESTED = "Change Requested"
    TRIP_COMPLETED = "Trip Completed"


class VehicleStatus(str, enum.Enum):
    FREE = "Free"
    IN_TRIP = "In-Trip"
    MAINTENANCE = "Maintenance"


class BookingType(str, enum.Enum):
    EMPLOYEE = "Employee"
    GUEST = "Guest"


class TripType(str, enum.Enum):
    ONE_WAY = "One Way"
    ROUND_TRIP = "Round Trip"


class JourneyType(str, enum.Enum):
    LOCAL = "Local"
    OUTSTATION = "Outstation"
