import time
import logging
from functools import wraps
from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, Info, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

# Prometheus Registry
REGISTRY = CollectorRegistry()

booking_transitions_total = Counter(
    'fleet_booking_transitions_total',
    'Booking lifecycle operations by outcome',
    ['operation', 'outcome'],
    registry=REGISTRY
)

booking_transition_duration_seconds = Histogram(
    'fleet_booking_transition_duration_seconds',
    'Booking lifecycle operation duration in seconds',
    ['operation'],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY
)

notification_failures_total = Counter(
    'fleet_notification_failures_total',
    'Notifications that could not be delivered after a committed transition',
    ['event'],
    registry=REGISTRY
)

live_observers = Gauge(
    'fleet_live_observers',
    'Observers currently subscribed to the admin live channel',
    registry=REGISTRY
)

live_messages_total = Counter(
    'fleet_live_messages_total',
    'Messages published through the live location relay',
    ['kind'],
    registry=REGISTRY
)

live_messages_dropped_total = Counter(
    'fleet_live_messages_dropped_total',
    'Position pushes dropped by the relay',
    ['reason'],
    registry=REGISTRY
)

rate_limit_exceeded_total = Counter(
    'fleet_rate_limit_exceeded_total',
    'Total rate limit violations',
    ['endpoint'],
    registry=REGISTRY
)

system_info = Info(
    'fleet_booking_info',
    'System information',
    registry=REGISTRY
)
system_info.info({
    'version': '1.0.0',
    'service': 'fleet-booking'
})


def _outcome(error: Optional[BaseException]) -> str:
    if error is None:
        return "success"
    return error.__class__.__name__


def track_transition(operation: Optional[str] = None):
    """
    Decorator that times a booking operation and records its outcome.

    The outcome label is ``success`` or the exception class name, so a
    lost allocation race shows up as ``ResourceConflict`` rather than as
    a generic error.

    Usage:
    @track_transition("allocate")
    async def allocate(self, booking_id, ...):
        ...
    """
    def decorator(func):
        op_name = operation or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            error: Optional[BaseException] = None
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                error = e
                raise
            finally:
                duration = time.perf_counter() - start_time
                outcome = _outcome(error)
                booking_transitions_total.labels(operation=op_name, outcome=outcome).inc()
                booking_transition_duration_seconds.labels(operation=op_name).observe(duration)
                logger.info(
                    f"Booking operation executed: {op_name}",
                    extra={
                        'operation': op_name,
                        'outcome': outcome,
                        'duration_ms': round(duration * 1000, 3),
                    }
                )

        return wrapper
    return decorator


def get_prometheus_metrics() -> bytes:
    """Get Prometheus metrics in text format"""
    return generate_latest(REGISTRY)
