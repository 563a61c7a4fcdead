"""Reminder policy to trigger-time rules."""

from __future__ import annotations

from datetime import datetime, timedelta

from selfcare_engine.errors import InvalidPolicy
from selfcare_engine.schema import ReminderKind, ReminderPolicy

FIXED_MINUTE_OPTIONS = (15, 30)
DEFAULT_GRACE = timedelta(minutes=2)


def policy_offset(policy: ReminderPolicy) -> timedelta:
    """Return how long before the event start the policy fires."""

    if policy.kind == ReminderKind.FIXED_MINUTES_BEFORE:
        if policy.minutes not in FIXED_MINUTE_OPTIONS:
            raise InvalidPolicy(f"Fixed reminders must be one of {FIXED_MINUTE_OPTIONS} minutes, got {policy.minutes}")
        if policy.hours is not None:
            raise InvalidPolicy("Fixed reminders take minutes only")
        return timedelta(minutes=policy.minutes)

    if policy.kind == ReminderKind.ONE_DAY_BEFORE:
        if policy.hours is not None or policy.minutes is not None:
            raise InvalidPolicy("One-day reminders take no offset")
        return timedelta(hours=24)

    if policy.kind == ReminderKind.CUSTOM:
        if policy.hours is None and policy.minutes is None:
            raise InvalidPolicy("Custom reminders need hours, minutes or both")
        hours = policy.hours or 0
        minutes = policy.minutes or 0
        if hours < 0 or minutes < 0:
            raise InvalidPolicy("Custom reminder offsets cannot be negative")
        offset = timedelta(hours=hours, minutes=minutes)
        if offset <= timedelta(0):
            raise InvalidPolicy("Custom reminder offset must be greater than zero")
        return offset

    raise InvalidPolicy(f"Unknown reminder kind: {policy.kind!r}")


def validate_policy(policy: ReminderPolicy) -> None:
    policy_offset(policy)


def compute_trigger_at(start: datetime, policy: ReminderPolicy) -> datetime:
    """Compute the absolute fire time for a policy attached to an event."""

    return start - policy_offset(policy)


def is_stale(trigger_at: datetime, now: datetime, grace: timedelta = DEFAULT_GRACE) -> bool:
    """True when the trigger already passed by more than the grace window."""

    return trigger_at < now - grace
