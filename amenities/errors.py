"""Typed failures raised by the booking engine.

Every error carries a ``kind`` that the service layer maps to a status code
and a human readable ``message``. Nothing in the core converts one of these
into a success value.
"""
from __future__ import annotations


class BookingError(Exception):
    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NotFoundError(BookingError):
    """A referenced space, booking, user or unit does not exist."""

    kind = "not_found"


class BadRequestError(BookingError):
    """Structurally invalid input (inverted interval, past start, inactive space...)."""

    kind = "bad_request"


class ConflictError(BookingError):
    """The requested interval overlaps an active booking, or a space still has active bookings."""

    kind = "conflict"


class ForbiddenError(BookingError):
    """The caller lacks ownership or privilege."""

    kind = "forbidden"


class InvalidStateError(BookingError):
    """The state machine does not allow the requested transition."""

    kind = "invalid_state"
