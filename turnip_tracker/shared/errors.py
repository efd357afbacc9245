"""
Error taxonomy for the turnip tracker.

Every failure that leaves the core is one of these, so the transport layer
can decide between a correction message, the "send your Sunday price first"
reply, or a generic failure.
"""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class InvalidInput(TrackerError):
    """Malformed price, day name or half-day marker. Raised before any store access."""


class InvalidSlot(InvalidInput):
    """A (day, half-day) pair that has no observation slot, e.g. Sunday."""


class NotFound(TrackerError):
    """No matching user, week or observation."""


class StoreUnavailable(TrackerError):
    """The backing store could not complete the request."""
