"""
Pytest configuration and shared fixtures for the fleet booking test suite.

This module provides:
- Database fixtures (in-memory SQLite for fast tests)
- Service fixtures wired to a recording notifier and an in-memory relay
- FastAPI test client fixtures
- Payload and record factories
"""

from datetime import date, time
from typing import AsyncGenerator, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from core.db import Database, get_db
from main import create_app
from middleware.rate_limit import limiter
from models.booking import Booking
from models.enums import BookingType, JourneyType, TripType
from realtime.relay import LiveLocationRelay
from schemas.booking import EmployeeBookingCreate, GuestBookingCreate
from schemas.vehicle import VehicleCreate
from services.booking_service import BookingService
from services.exceptions import NotificationFailure
from services.fleet_service import FleetService
from services.notifications import NotificationEvent, Notifier


# Test Database Configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_memory_database() -> Database:
    return Database(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class RecordingNotifier(Notifier):
    """Notifier double that remembers every event and can be told to fail."""

    def __init__(self, fail: bool = False):
        super().__init__(approver_email="approver@test.local", driver_email="driver@test.local")
        self.fail = fail
        self.sent: List[Tuple[NotificationEvent, int]] = []

    async def notify(self, event: NotificationEvent, booking: Booking) -> None:
        if self.fail:
            raise NotificationFailure(f"mail relay down for {event.value}")
        self.sent.append((event, booking.id))

    def events_for(self, booking_id: int) -> List[NotificationEvent]:
        return [event for event, sent_id in self.sent if sent_id == booking_id]


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """In-memory database with the schema created."""
    db = make_memory_database()
    await db.create_all()

    yield db

    await db.drop_all()
    await db.dispose()


@pytest.fixture
async def async_db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for testing."""
    async with database.sessionmaker() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def relay() -> LiveLocationRelay:
    return LiveLocationRelay(mailbox_size=8)


@pytest.fixture
def booking_service(async_db_session, notifier, relay) -> BookingService:
    return BookingService(db=async_db_session, notifier=notifier, relay=relay)


@pytest.fixture
def fleet_service(async_db_session) -> FleetService:
    return FleetService(db=async_db_session)


@pytest.fixture
async def test_app(database, notifier, relay, async_db_session):
    """Application wired to the test database, rate limiting off."""
    app = create_app(database=database, notifier=notifier, relay=relay, create_tables=False)

    async def override_get_db():
        yield async_db_session

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False

    yield app

    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client over the ASGI app."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


# Test Data Factories
def employee_payload(**overrides) -> EmployeeBookingCreate:
    data = dict(
        employee_name="Asha Rao",
        employee_id="E-1001",
        employee_email="asha.rao@example.com",
        from_location="Head Office",
        to_location="Airport T2",
        start_date=date(2026, 11, 2),
        start_time=time(9, 30),
        trip_type=TripType.ONE_WAY,
        journey_type=JourneyType.LOCAL,
        reason_for_travel="Client visit",
    )
    data.update(overrides)
    return EmployeeBookingCreate(**data)


def guest_payload(**overrides) -> GuestBookingCreate:
    data = dict(
        guest_name="Daniel Okafor",
        guest_email="d.okafor@partner.example",
        contact_number="+91 98450 00000",
        company_name="Partner Labs",
        num_guests=2,
        from_location="Hotel Lakeview",
        to_location="Plant 3",
        start_date=date(2026, 11, 3),
        start_time=time(8, 0),
        end_date=date(2026, 11, 3),
        end_time=time(18, 0),
        trip_type=TripType.ROUND_TRIP,
        journey_type=JourneyType.OUTSTATION,
        reason_for_travel="Plant audit",
    )
    data.update(overrides)
    return GuestBookingCreate(**data)


async def add_vehicle(
    fleet: FleetService,
    plate: str = "KA-01-AB-1234",
    name: str = "Innova",
    odometer: int = 12000,
) -> int:
    vehicle = await fleet.add_vehicle(
        VehicleCreate(name=name, plate_number=plate, current_odometer_km=odometer, vehicle_type="SUV")
    )
    return vehicle.id


async def create_booking(service: BookingService, payload: Optional[EmployeeBookingCreate] = None) -> int:
    result = await service.create(payload or employee_payload(), BookingType.EMPLOYEE)
    return result.booking.id


async def allocate(service: BookingService, booking_id: int, vehicle_id: int, name: str = "Innova"):
    return await service.allocate(
        booking_id,
        vehicle_id=vehicle_id,
        vehicle_name=name,
        vehicle_number=f"PLATE-{vehicle_id}",
        vehicle_type="SUV",
    )
