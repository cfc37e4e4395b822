from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from core.db import get_db
from realtime.relay import LiveLocationRelay
from services.booking_service import BookingService
from services.fleet_service import FleetService
from services.notifications import Notifier


def get_notifier(conn: HTTPConnection) -> Optional[Notifier]:
    return getattr(conn.app.state, "notifier", None)


def get_relay(conn: HTTPConnection) -> LiveLocationRelay:
    return conn.app.state.relay


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    notifier: Optional[Notifier] = Depends(get_notifier),
    relay: LiveLocationRelay = Depends(get_relay),
) -> BookingService:
    return BookingService(db=db, notifier=notifier, relay=relay)


def get_fleet_service(db: AsyncSession = Depends(get_db)) -> FleetService:
    return FleetService(db=db)
