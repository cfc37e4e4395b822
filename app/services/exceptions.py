class BookingDomainError(Exception):
    """Base class for all booking and fleet domain errors."""

class ValidationError(BookingDomainError):
    """Raised when required fields are missing or malformed."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field

class NotFoundOrAlreadyActioned(BookingDomainError):
    """Raised when a guarded update matched no row: the record is missing or in the wrong state."""

class ResourceConflict(BookingDomainError):
    """Raised when a shared resource changed underneath the caller."""

class VehicleUnavailable(ResourceConflict):
    """Raised when the selected vehicle is no longer available at allocation time."""

class InvalidTransitionError(BookingDomainError):
    """Raised when a status change is not an edge of the booking state machine."""

class NotificationFailure(BookingDomainError):
    """Raised by notifiers; never reverses the transition that triggered it."""

class DatabaseQueryError(BookingDomainError):
    """Raised when a database statement fails and the transaction was rolled back."""
