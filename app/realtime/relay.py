"""
In-memory fan-out of driver positions to admin observers.

Delivery is best-effort and last-value-wins per booking. Every observer
owns a mailbox keyed by booking id: a newer frame for a booking replaces
the one still waiting, so publishing never awaits and a slow observer
costs at most one pending frame per live trip. Observers that join late
get no backfill.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Optional, Set

from core.metrics import live_messages_dropped_total, live_messages_total, live_observers
from realtime.markers import parse_point
from schemas.live import LOCATION_UPDATE, LOCATION_UPDATE_COMPLETE, LiveFrame, PositionUpdate, TripCompletedEvent

logger = logging.getLogger(__name__)


class SubscriptionClosed(Exception):
    """Raised by :meth:`Subscription.get` once the subscription is closed and drained."""


class Subscription:
    """One observer's mailbox in the admin group."""

    def __init__(self, relay: "LiveLocationRelay", capacity: int):
        self._relay = relay
        self._capacity = max(1, capacity)
        self._pending: "OrderedDict[int, LiveFrame]" = OrderedDict()
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return len(self._pending)

    def offer(self, booking_id: int, frame: LiveFrame) -> bool:
        if self._closed:
            return False

        if booking_id in self._pending:
            # Re-insert so ordering follows the latest write
            del self._pending[booking_id]
        elif len(self._pending) >= self._capacity:
            evicted = self._eviction_candidate()
            if evicted is None and frame.event == LOCATION_UPDATE:
                live_messages_dropped_total.labels(reason="mailbox_full").inc()
                logger.warning(f"Observer mailbox full of completions, dropped position for booking {booking_id}")
                return False
            if evicted is None:
                evicted = next(iter(self._pending))
            del self._pending[evicted]
            live_messages_dropped_total.labels(reason="mailbox_full").inc()
            logger.warning(f"Observer mailbox full, dropped pending frame for booking {evicted}")

        self._pending[booking_id] = frame
        self._ready.set()
        return True

    def _eviction_candidate(self) -> Optional[int]:
        """Oldest booking whose pending frame is a position; completions are kept."""
        for booking_id, pending in self._pending.items():
            if pending.event == LOCATION_UPDATE:
                return booking_id
        return None

    async def get(self) -> LiveFrame:
        while True:
            if self._pending:
                _, frame = self._pending.popitem(last=False)
                return frame
            if self._closed:
                raise SubscriptionClosed()
            self._ready.clear()
            await self._ready.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._ready.set()
        self._relay.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> LiveFrame:
        try:
            return await self.get()
        except SubscriptionClosed:
            raise StopAsyncIteration


class LiveLocationRelay:
    """
    Admin-room broadcast channel for live trip positions.

    Holds no per-booking position state. It only remembers a bounded set
    of recently completed bookings so a position that arrives after the
    trip ended cannot re-create its marker.
    """

    def __init__(self, mailbox_size: int = 256, completed_memory: int = 1024):
        self.mailbox_size = mailbox_size
        self._completed_memory = completed_memory
        self._subscribers: Set[Subscription] = set()
        self._completed: "OrderedDict[int, None]" = OrderedDict()

    @property
    def observer_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.mailbox_size)
        self._subscribers.add(subscription)
        live_observers.set(len(self._subscribers))
        logger.info(f"Observer joined the admin room ({len(self._subscribers)} connected)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            live_observers.set(len(self._subscribers))
            logger.info(f"Observer left the admin room ({len(self._subscribers)} connected)")
        if not subscription.closed:
            subscription.close()

    def is_completed(self, booking_id: int) -> bool:
        return booking_id in self._completed

    def publish_position(self, update: PositionUpdate) -> int:
        """Fan a position out to every observer. Returns the number of observers reached."""
        if self.is_completed(update.booking_id):
            live_messages_dropped_total.labels(reason="trip_completed").inc()
            logger.debug(f"Dropped position for completed booking {update.booking_id}")
            return 0

        live_messages_total.labels(kind=LOCATION_UPDATE).inc()
        frame = LiveFrame(event=LOCATION_UPDATE, data=update.model_dump(by_alias=True, mode="json"))
        return self._broadcast(update.booking_id, frame)

    def publish_completion(self, event: TripCompletedEvent) -> int:
        """Retire the booking's live marker and announce where the trip ended."""
        if event.position is None:
            event = event.model_copy(update={"position": parse_point(event.drop_point)})

        self._remember_completed(event.booking_id)
        live_messages_total.labels(kind=LOCATION_UPDATE_COMPLETE).inc()
        frame = LiveFrame(event=LOCATION_UPDATE_COMPLETE, data=event.model_dump(by_alias=True, mode="json"))
        return self._broadcast(event.booking_id, frame)

    def close(self) -> None:
        for subscription in list(self._subscribers):
            subscription.close()
        self._subscribers.clear()
        live_observers.set(0)

    def _remember_completed(self, booking_id: int) -> None:
        self._completed[booking_id] = None
        self._completed.move_to_end(booking_id)
        while len(self._completed) > self._completed_memory:
            self._completed.popitem(last=False)

    def _broadcast(self, booking_id: int, frame: LiveFrame) -> int:
        delivered = 0
        for subscription in list(self._subscribers):
            if subscription.offer(booking_id, frame):
                delivered += 1
        return delivered
