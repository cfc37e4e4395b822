from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, func
from sqlalchemy.orm import relationship
from core.db import Base
from models.enums import VehicleStatus


def enum_column(enum_cls, **kwargs):
    # Store the enum value ("In-Trip"), not the member name
    return Column(
        Enum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=32,
            validate_strings=True,
        ),
        **kwargs
    )


class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    plate_number = Column(String(32), unique=True, nullable=False)
    current_odometer_km = Column(Integer, nullable=False, default=0)
    vehicle_type = Column(String(50), nullable=False, default="Sedan")
    # is_available == (status == Free); written together by every mutation
    is_available = Column(Boolean, nullable=False, default=True)
    status = enum_column(VehicleStatus, nullable=False, default=VehicleStatus.FREE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="vehicle")
