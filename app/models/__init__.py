# Importing the package registers every table on Base.metadata
from .enums import BookingStatus, VehicleStatus, BookingType, TripType, JourneyType
from .vehicle import Vehicle
from .booking import Booking
