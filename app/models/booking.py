from sqlalchemy import Column, Integer, String, Text, Boolean, Date, Time, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from core.db import Base
from models.enums import BookingStatus, BookingType, TripType, JourneyType
from models.vehicle import enum_column


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, index=True)
    booking_type = enum_column(BookingType, nullable=False)

    # Employee requester
    employee_name = Column(String(100), nullable=True)
    employee_id = Column(String(50), nullable=True)
    employee_email = Column(String(255), nullable=True)

    # Guest requester
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)
    contact_number = Column(String(32), nullable=True)
    company_name = Column(String(100), nullable=True)
    num_guests = Column(Integer, nullable=True)

    # Route and schedule
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_date = Column(Date, nullable=True)  # round trips only
    end_time = Column(Time, nullable=True)
    trip_type = enum_column(TripType, nullable=False)
    journey_type = enum_column(JourneyType, nullable=False)
    reason_for_travel = Column(Text, nullable=False)
    is_admin_trip = Column(Boolean, nullable=False, default=False)

    status = enum_column(BookingStatus, nullable=False, default=BookingStatus.PENDING_ALLOCATION, index=True)

    # Allocation
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True, index=True)
    vehicle_name = Column(String(100), nullable=True)
    vehicle_number = Column(String(32), nullable=True)
    vehicle_type = Column(String(50), nullable=True)

    # Driver-reported telemetry
    driver_start_time = Column(Time, nullable=True)
    driver_start_odometer = Column(Integer, nullable=True)
    start_point = Column(String(255), nullable=True)
    driver_end_time = Column(Time, nullable=True)
    driver_end_odometer = Column(Integer, nullable=True)
    drop_point = Column(String(255), nullable=True)

    admin_comments = Column(Text, nullable=True)
    driver_comments = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    vehicle = relationship("Vehicle", back_populates="bookings")

    @property
    def requester_name(self):
        return self.employee_name or self.guest_name

    @property
    def requester_email(self):
        return self.employee_email or self.guest_email
