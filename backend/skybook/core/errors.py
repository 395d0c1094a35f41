"""Domain errors raised by the booking services.

Routers translate them into HTTP responses; every error carries a message
that can be shown to the user as is.
"""


class BookingError(Exception):
    default_message = "Booking operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidStateError(BookingError):
    """The booking is not in a state that allows the operation. Do not retry."""

    default_message = "Only confirmed bookings can be cancelled"


class CancellationInProgressError(BookingError):
    default_message = "A cancellation for this booking is already in progress"


class RemoteFailureError(BookingError):
    """The booking service rejected the cancellation; the user may retry."""

    default_message = "Failed to cancel booking"


class MalformedRecordError(BookingError):
    default_message = "Reminder record could not be parsed"

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message)
