"""Error taxonomy for the reminder and recommendation core."""

from __future__ import annotations


class InvalidPolicy(ValueError):
    """Malformed reminder configuration, rejected at creation."""


class ReminderAlreadyPast(UserWarning):
    """Non-fatal: the reminder was stored but flagged stale and will not fire."""


class UnknownEvent(LookupError):
    pass


class UnknownRecommendation(LookupError):
    """Feedback references an id the scorer could not have produced."""


class ExternalServiceUnavailable(RuntimeError):
    """The external judge failed, timed out or answered with garbage."""
