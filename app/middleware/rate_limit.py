from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from core.environment import get_booking_rate_limit
from core.metrics import rate_limit_exceeded_total

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["300/minute"]
)

# Applied to the booking submission endpoints
BOOKING_RATE_LIMIT = get_booking_rate_limit()


def custom_rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    rate_limit_exceeded_total.labels(endpoint=request.url.path).inc()

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": f"Rate limit exceeded ({exc.detail}). Please try again later.",
        },
    )
