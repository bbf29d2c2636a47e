"""
Error taxonomy shared by the domain, services and API layers.

Each class maps to one HTTP status in ``src.api.app``:

* ``InvalidInput``    -> 400  (caller must fix the request)
* ``NotFound``        -> 404
* ``ConflictError``   -> 409  (safe to retry after backoff / refresh)
* ``UpstreamFailure`` -> 502  (payment processor or notifier)
"""

from __future__ import annotations


class BookingPlatformError(Exception):
    """Base class for all expected, caller-visible failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(BookingPlatformError):
    """Malformed or missing pricing / quote / booking fields."""


class QuoteExpired(InvalidInput):
    def __init__(self, quote_number: str):
        super().__init__(
            f"Quote {quote_number} has expired. Please request a new quote."
        )
        self.quote_number = quote_number


class NotFound(BookingPlatformError):
    """Referenced quote, booking or assignment does not exist."""


class ConflictError(BookingPlatformError):
    """A uniqueness invariant would be violated."""


class InvalidStateTransition(ConflictError):
    """Raised when a status change violates a lifecycle transition table."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition from {current} to {target}")
        self.current = current
        self.target = target


class UpstreamFailure(BookingPlatformError):
    """Payment processor or notifier call failed."""
