"""
Outbound notifications for booking lifecycle events.

The booking service calls :func:`dispatch_notification` after a transition
has committed. Delivery problems are logged, counted and turned into a
warning for the caller; they never reach the transaction.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from core.environment import (
    get_approver_email,
    get_driver_email,
    get_notify_timeout,
    get_notify_webhook_url,
)
from core.metrics import notification_failures_total
from core.retry import NonRetryableError, RetryableError, async_retry
from models.booking import Booking
from schemas.booking import BookingOut
from services.exceptions import NotificationFailure

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    BOOKING_REQUESTED = "booking_requested"
    CAR_ALLOCATED = "car_allocated"
    BOOKING_REJECTED = "booking_rejected"
    CHANGE_REQUESTED = "change_requested"
    TRIP_COMPLETED = "trip_completed"
    TRIP_FORCE_ENDED = "trip_force_ended"


@dataclass
class Recipients:
    to: List[str] = field(default_factory=list)
    cc: List[str] = field(default_factory=list)


class Notifier:
    """The ``notify(event, booking)`` capability consumed by the booking service."""

    def __init__(self, approver_email: Optional[str] = None, driver_email: Optional[str] = None):
        self.approver_email = approver_email or get_approver_email()
        self.driver_email = driver_email or get_driver_email()

    def recipients_for(self, event: NotificationEvent, booking: Booking) -> Recipients:
        if event in (NotificationEvent.BOOKING_REQUESTED, NotificationEvent.CHANGE_REQUESTED):
            return Recipients(to=[self.approver_email])

        requester = [booking.requester_email] if booking.requester_email else []
        if event == NotificationEvent.CAR_ALLOCATED:
            return Recipients(to=requester, cc=[self.driver_email])
        return Recipients(to=requester)

    async def notify(self, event: NotificationEvent, booking: Booking) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Used when no delivery endpoint is configured."""

    async def notify(self, event: NotificationEvent, booking: Booking) -> None:
        recipients = self.recipients_for(event, booking)
        logger.info(
            f"Notification {event.value} for booking {booking.id}",
            extra={'event': event.value, 'booking_id': booking.id, 'to': recipients.to, 'cc': recipients.cc}
        )


class WebhookNotifier(Notifier):
    """
    Posts lifecycle events as JSON to a delivery service.

    Payload: ``{"event", "bookingId", "recipients": {"to", "cc"}, "booking"}``.
    Transport errors and 5xx/429 answers are retried with backoff; any
    other 4xx answer fails at once.
    """

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        approver_email: Optional[str] = None,
        driver_email: Optional[str] = None,
    ):
        super().__init__(approver_email=approver_email, driver_email=driver_email)
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout or get_notify_timeout())
        self._owns_client = client is None

    def build_payload(self, event: NotificationEvent, booking: Booking) -> Dict[str, Any]:
        recipients = self.recipients_for(event, booking)
        return {
            "event": event.value,
            "bookingId": booking.id,
            "recipients": {"to": recipients.to, "cc": recipients.cc},
            "booking": BookingOut.model_validate(booking).model_dump(by_alias=True, mode="json"),
        }

    async def notify(self, event: NotificationEvent, booking: Booking) -> None:
        payload = self.build_payload(event, booking)
        if not payload["recipients"]["to"]:
            logger.info(f"No recipient for {event.value} on booking {booking.id}, skipping")
            return

        try:
            await self._post(payload)
        except (RetryableError, NonRetryableError, httpx.HTTPError) as e:
            raise NotificationFailure(f"Could not deliver {event.value} for booking {booking.id}: {e}") from e

    @async_retry(max_attempts=3, base_delay=0.5, max_delay=4.0)
    async def _post(self, payload: Dict[str, Any]) -> None:
        response = await self._client.post(self.url, json=payload)
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableError(f"delivery service answered {response.status_code}")
        if response.status_code >= 400:
            raise NonRetryableError(f"delivery service rejected the event ({response.status_code}): {response.text}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_notifier() -> Notifier:
    url = get_notify_webhook_url()
    if url:
        logger.info(f"Notifications delivered through webhook {url}")
        return WebhookNotifier(url)
    return LogNotifier()


async def dispatch_notification(
    notifier: Optional[Notifier],
    event: NotificationEvent,
    booking: Booking
) -> Optional[str]:
    """
    Deliver one notification for an already committed transition.

    Returns None on success or a warning for the caller when delivery
    failed and someone needs to follow up by hand.
    """
    if notifier is None:
        return None

    try:
        await notifier.notify(event, booking)
        return None
    except Exception as e:
        notification_failures_total.labels(event=event.value).inc()
        logger.error(f"Notification {event.value} failed for booking {booking.id}: {e}")
        return "Notification could not be sent. Please notify the affected people manually."
