"""Booking state machine.

Every lifecycle operation takes its guard from :data:`OPERATION_RULES`; the
source set is embedded in the conditional UPDATE, so an illegal transition
is rejected by the same statement that would have performed it.
"""

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet

from models.enums import BookingStatus
from services.exceptions import InvalidTransitionError

S = BookingStatus

BOOKING_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    S.PENDING_ALLOCATION: frozenset({S.CAR_ALLOCATED, S.REJECTED}),
    S.CAR_ALLOCATED: frozenset({S.TRIP_STARTED, S.CHANGE_REQUESTED, S.TRIP_COMPLETED}),
    S.CHANGE_REQUESTED: frozenset({S.CAR_ALLOCATED}),
    S.TRIP_STARTED: frozenset({S.TRIP_COMPLETED}),
    S.REJECTED: frozenset(),
    S.TRIP_COMPLETED: frozenset(),
}

INITIAL_STATUS = S.PENDING_ALLOCATION
TERMINAL_STATUSES = frozenset(status for status, targets in BOOKING_TRANSITIONS.items() if not targets)

# Statuses in which a booking holds a vehicle that is In-Trip
ACTIVE_STATUSES = frozenset({S.CAR_ALLOCATED, S.TRIP_STARTED})


class Operation(str, enum.Enum):
    ALLOCATE = "allocate"
    REJECT = "reject"
    START_TRIP = "start_trip"
    END_TRIP = "end_trip"
    REQUEST_CHANGE = "request_change"
    FORCE_END = "force_end"


@dataclass(frozen=True)
class TransitionRule:
    operation: Operation
    sources: FrozenSet[BookingStatus]
    target: BookingStatus

    def allows(self, current: BookingStatus) -> bool:
        return current in self.sources

    def describe_sources(self) -> str:
        return " or ".join(sorted(s.value for s in self.sources))


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    allowed = BOOKING_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Invalid booking transition: {current.value} → {target.value}"
        )


def _rule(operation: Operation, sources, target: BookingStatus) -> TransitionRule:
    for source in sources:
        assert_transition(source, target)
    return TransitionRule(operation=operation, sources=frozenset(sources), target=target)


OPERATION_RULES: Dict[Operation, TransitionRule] = {
    rule.operation: rule
    for rule in (
        _rule(Operation.ALLOCATE, {S.PENDING_ALLOCATION, S.CHANGE_REQUESTED}, S.CAR_ALLOCATED),
        _rule(Operation.REJECT, {S.PENDING_ALLOCATION}, S.REJECTED),
        _rule(Operation.START_TRIP, {S.CAR_ALLOCATED}, S.TRIP_STARTED),
        _rule(Operation.END_TRIP, {S.TRIP_STARTED}, S.TRIP_COMPLETED),
        _rule(Operation.REQUEST_CHANGE, {S.CAR_ALLOCATED}, S.CHANGE_REQUESTED),
        _rule(Operation.FORCE_END, {S.TRIP_STARTED, S.CAR_ALLOCATED}, S.TRIP_COMPLETED),
    )
}


def rule_for(operation: Operation) -> TransitionRule:
    return OPERATION_RULES[operation]
