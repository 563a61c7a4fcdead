from datetime import datetime, timedelta

import pytest

from selfcare_engine.errors import InvalidPolicy, ReminderAlreadyPast, UnknownEvent
from selfcare_engine.reminders import ReminderService
from selfcare_engine.scanner import scan_due
from selfcare_engine.schema import CalendarEvent, ReminderPolicy
from selfcare_engine.store import Store

NOW = datetime(2025, 11, 14, 10, 0)


def service_with_event(start=None, event_id="e1"):
    store = Store.in_memory()
    start = start or NOW + timedelta(hours=2)
    store.add_event(CalendarEvent(event_id, "u1", "Therapy", start, start + timedelta(hours=1)))
    return store, ReminderService(store, clock=lambda: NOW)


def test_attach_reminder_persists_trigger_time():
    store, service = service_with_event()
    reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(30))
    assert reminder.trigger_at == NOW + timedelta(hours=1, minutes=30)
    assert not reminder.sent and not reminder.stale
    assert store.get_reminder(reminder.id) == reminder


def test_attach_reminder_unknown_event():
    _, service = service_with_event()
    with pytest.raises(UnknownEvent):
        service.attach_reminder("missing", ReminderPolicy.minutes_before(15))


def test_invalid_policy_writes_nothing():
    _, service = service_with_event()
    with pytest.raises(InvalidPolicy):
        service.attach_reminder("e1", ReminderPolicy.custom())
    assert service.reminders_for_event("e1") == []


def test_past_trigger_is_stored_stale_and_warned():
    store, service = service_with_event(start=NOW + timedelta(minutes=10))
    with pytest.warns(ReminderAlreadyPast):
        reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(30))
    assert reminder.stale
    assert store.get_reminder(reminder.id).stale
    assert scan_due(store, NOW + timedelta(hours=1)) == []


def test_trigger_within_grace_is_not_stale():
    _, service = service_with_event(start=NOW + timedelta(minutes=29))
    reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(30))
    assert not reminder.stale


def test_reschedule_updates_triggers_before_next_scan():
    store, service = service_with_event()
    reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(30))

    new_start = NOW + timedelta(hours=5)
    updated = service.reschedule_event("e1", new_start, new_start + timedelta(hours=1))

    assert [r.trigger_at for r in updated] == [new_start - timedelta(minutes=30)]
    assert store.get_event("e1").start == new_start
    assert scan_due(store, reminder.trigger_at) == []
    assert [r.id for r in scan_due(store, new_start - timedelta(minutes=30))] == [reminder.id]


def test_reschedule_into_the_past_marks_stale():
    store, service = service_with_event()
    reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(30))
    with pytest.warns(ReminderAlreadyPast):
        service.reschedule_event("e1", NOW + timedelta(minutes=5), NOW + timedelta(minutes=50))
    assert store.get_reminder(reminder.id).stale


def test_reschedule_keeps_sent_flag():
    store, service = service_with_event()
    reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(30))
    scan_due(store, reminder.trigger_at)

    new_start = NOW + timedelta(days=1)
    service.reschedule_event("e1", new_start, new_start + timedelta(hours=1))
    stored = store.get_reminder(reminder.id)
    assert stored.sent
    assert stored.trigger_at == new_start - timedelta(minutes=30)
    assert scan_due(store, new_start) == []


def test_reschedule_rejects_bad_window_and_unknown_event():
    _, service = service_with_event()
    with pytest.raises(ValueError):
        service.reschedule_event("e1", NOW, NOW)
    with pytest.raises(UnknownEvent):
        service.reschedule_event("missing", NOW, NOW + timedelta(hours=1))


def test_delete_reminder():
    _, service = service_with_event()
    reminder = service.attach_reminder("e1", ReminderPolicy.minutes_before(15))
    service.delete_reminder(reminder.id)
    assert service.reminders_for_event("e1") == []
    with pytest.raises(LookupError):
        service.delete_reminder(reminder.id)
