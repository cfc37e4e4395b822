from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from core.db import Database
from core.environment import get_cors_origins, get_relay_mailbox_size, should_create_tables
from core.logging import setup_logging
from exceptions import register_exception_handlers
from middleware.rate_limit import custom_rate_limit_exceeded, limiter
from realtime.relay import LiveLocationRelay
from routers import bookings, fleet, health, live, metrics
from services.notifications import Notifier, build_notifier

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    notifier: Optional[Notifier] = None,
    relay: Optional[LiveLocationRelay] = None,
    create_tables: Optional[bool] = None,
) -> FastAPI:
    """
    Builds the fleet booking API.

    The database handle, notifier and live relay are created here (or
    injected by tests) and stored on ``app.state``; routers reach them
    through dependencies only.
    """
    setup_logging()

    database = database or Database()
    notifier = notifier or build_notifier()
    relay = relay or LiveLocationRelay(mailbox_size=get_relay_mailbox_size())
    create_tables = should_create_tables() if create_tables is None else create_tables

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            await database.create_all()
            logger.info("Database tables ensured")
        try:
            yield
        finally:
            # teardown on shutdown
            relay.close()
            aclose = getattr(notifier, "aclose", None)
            if aclose is not None:
                await aclose()
            await database.dispose()
            logger.info("Fleet booking API stopped")

    app = FastAPI(title="Fleet Booking API", lifespan=lifespan)
    app.state.database = database
    app.state.notifier = notifier
    app.state.relay = relay
    app.state.limiter = limiter

    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded)
    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_methods=["*"],   # Allows POST, GET, PUT, OPTIONS
        allow_headers=["*"],
    )

    # fleet before bookings: /bookings/cars must not match /bookings/{booking_id}
    app.include_router(fleet.router)
    app.include_router(bookings.router)
    app.include_router(live.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    return app


app = create_app()
