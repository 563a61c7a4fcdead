"""Reminder creation and event rescheduling."""

from __future__ import annotations

import logging
import uuid
import warnings
from datetime import datetime, timedelta
from typing import Callable, Optional

from selfcare_engine.errors import ReminderAlreadyPast, UnknownEvent
from selfcare_engine.schema import Reminder, ReminderPolicy
from selfcare_engine.store import Store
from selfcare_engine.triggers import DEFAULT_GRACE, compute_trigger_at, is_stale, validate_policy

logger = logging.getLogger(__name__)


class ReminderService:
    """Attach reminder policies to events and keep trigger times in sync."""

    def __init__(
        self,
        store: Store,
        grace: timedelta = DEFAULT_GRACE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.grace = grace
        self.clock = clock

    def attach_reminder(self, event_id: str, policy: ReminderPolicy, now: Optional[datetime] = None) -> Reminder:
        """Create a reminder for an event.

        Raises InvalidPolicy for malformed policies and UnknownEvent for a
        missing event. A trigger already past the grace window is stored
        with ``stale=True`` and reported through a ReminderAlreadyPast warning.
        """

        validate_policy(policy)
        event = self.store.get_event(event_id)
        if event is None:
            raise UnknownEvent(f"Event {event_id} does not exist")

        now = now or self.clock()
        trigger_at = compute_trigger_at(event.start, policy)
        stale = is_stale(trigger_at, now, self.grace)

        reminder = self.store.add_reminder(
            Reminder(
                id=uuid.uuid4().hex,
                event_id=event_id,
                policy=policy,
                trigger_at=trigger_at,
                stale=stale,
                created_at=now,
            )
        )
        if stale:
            self._report_stale(reminder, now)
        else:
            logger.info("Reminder %s for event %s fires at %s", reminder.id, event_id, trigger_at.isoformat())
        return reminder

    def reschedule_event(
        self,
        event_id: str,
        start: datetime,
        end: datetime,
        now: Optional[datetime] = None,
    ) -> list[Reminder]:
        """Move an event and recompute every attached reminder atomically."""

        if end <= start:
            raise ValueError("Event end must be after its start")

        now = now or self.clock()

        def retrigger(policy: ReminderPolicy, new_start: datetime) -> tuple[datetime, bool]:
            trigger_at = compute_trigger_at(new_start, policy)
            return trigger_at, is_stale(trigger_at, now, self.grace)

        reminders = self.store.reschedule_event(event_id, start, end, retrigger)
        logger.info("Event %s moved to %s; %d reminder(s) recomputed", event_id, start.isoformat(), len(reminders))
        for reminder in reminders:
            if reminder.stale and not reminder.sent:
                self._report_stale(reminder, now)
        return reminders

    def reminders_for_event(self, event_id: str) -> list[Reminder]:
        return self.store.reminders_for_event(event_id)

    def delete_reminder(self, reminder_id: str) -> None:
        if not self.store.delete_reminder(reminder_id):
            raise LookupError(f"Reminder {reminder_id} does not exist")

    def _report_stale(self, reminder: Reminder, now: datetime) -> None:
        message = (
            f"Reminder {reminder.id} would have fired at {reminder.trigger_at.isoformat()}, "
            f"before {now.isoformat()}; it is stored as stale and will not fire"
        )
        logger.warning(message)
        warnings.warn(ReminderAlreadyPast(message), stacklevel=3)
