import threading
from datetime import datetime, timedelta

from selfcare_engine.reminders import ReminderService
from selfcare_engine.scanner import ReminderScanner, scan_due
from selfcare_engine.schema import CalendarEvent, ReminderPolicy
from selfcare_engine.store import Store

NOW = datetime(2025, 11, 14, 10, 0)


def seed_reminders(store):
    start = NOW + timedelta(hours=2)
    store.add_event(CalendarEvent("e1", "u1", "Dentist", start, start + timedelta(hours=1)))
    service = ReminderService(store, clock=lambda: NOW)
    return [
        service.attach_reminder("e1", ReminderPolicy.minutes_before(15)),
        service.attach_reminder("e1", ReminderPolicy.custom(hours=1)),
        service.attach_reminder("e1", ReminderPolicy.minutes_before(30)),
    ]


def test_scan_returns_due_in_trigger_order():
    store = Store.in_memory()
    seed_reminders(store)
    claimed = scan_due(store, NOW + timedelta(hours=3))
    triggers = [r.trigger_at for r in claimed]
    assert triggers == sorted(triggers)
    assert len(claimed) == 3
    assert all(r.sent and r.sent_at == NOW + timedelta(hours=3) for r in claimed)


def test_claimed_reminder_never_returned_again():
    store = Store.in_memory()
    seed_reminders(store)
    first = scan_due(store, NOW + timedelta(hours=3))
    assert first
    assert scan_due(store, NOW + timedelta(hours=3)) == []
    assert scan_due(store, NOW + timedelta(days=3)) == []


def test_future_reminders_are_excluded():
    store = Store.in_memory()
    reminders = seed_reminders(store)
    claimed = scan_due(store, NOW + timedelta(hours=1, minutes=30))
    assert {r.id for r in claimed} == {reminders[1].id, reminders[2].id}
    assert all(r.trigger_at <= NOW + timedelta(hours=1, minutes=30) for r in claimed)


def test_empty_scan_returns_empty_list():
    assert scan_due(Store.in_memory(), NOW) == []


def test_scanner_tick_delivers_claims():
    store = Store.in_memory()
    seed_reminders(store)
    delivered = []
    scanner = ReminderScanner(store, delivered.append, clock=lambda: NOW + timedelta(hours=3))
    scanner.trigger_now()
    assert len(delivered) == 3
    assert scanner.tick() == []


def test_failed_delivery_is_not_retried():
    store = Store.in_memory()
    seed_reminders(store)

    def broken(_reminder):
        raise RuntimeError("push service down")

    scanner = ReminderScanner(store, broken, clock=lambda: NOW + timedelta(hours=3))
    claimed = scanner.tick()
    assert len(claimed) == 3
    assert all(store.get_reminder(r.id).sent for r in claimed)
    assert scanner.tick() == []


def test_concurrent_scans_claim_each_reminder_once(tmp_path):
    store = Store(f"sqlite:///{tmp_path / 'reminders.db'}")
    store.create_all()
    start = NOW + timedelta(hours=2)
    service = ReminderService(store, clock=lambda: NOW)
    for i in range(10):
        store.add_event(CalendarEvent(f"e{i}", "u1", f"Event {i}", start, start + timedelta(hours=1)))
        service.attach_reminder(f"e{i}", ReminderPolicy.minutes_before(15))
        service.attach_reminder(f"e{i}", ReminderPolicy.minutes_before(30))

    barrier = threading.Barrier(4)
    results = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        claimed = scan_due(store, NOW + timedelta(hours=3))
        with lock:
            results.extend(r.id for r in claimed)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 20
    assert len(set(results)) == 20


def test_scheduled_scanner_delivers_on_interval():
    store = Store.in_memory()
    start = NOW + timedelta(hours=2)
    store.add_event(CalendarEvent("e1", "u1", "Dentist", start, start + timedelta(hours=1)))
    ReminderService(store, clock=lambda: NOW).attach_reminder("e1", ReminderPolicy.minutes_before(15))

    delivered = []
    ticked = threading.Event()

    def deliver(reminder):
        delivered.append(reminder.id)
        ticked.set()

    scanner = ReminderScanner(store, deliver, interval_seconds=1, clock=lambda: NOW + timedelta(hours=3))
    scanner.start()
    try:
        assert ticked.wait(10)
    finally:
        scanner.shutdown()
    assert len(delivered) == 1
    assert not scanner.scheduler.running
