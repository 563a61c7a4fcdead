"""Due-reminder scanning and the periodic scan loop."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from selfcare_engine.schema import Reminder
from selfcare_engine.store import Store

logger = logging.getLogger(__name__)

Deliver = Callable[[Reminder], None]


def scan_due(store: Store, now: datetime) -> list[Reminder]:
    """Claim every reminder due at ``now``, earliest first.

    A claimed reminder is marked sent before it is returned, so a later or
    overlapping scan never returns it again.
    """

    claimed = store.claim_due(now)
    if claimed:
        logger.info("Claimed %d due reminder(s) at %s", len(claimed), now.isoformat())
    return claimed


class ReminderScanner:
    """Runs ``scan_due`` on an interval and hands claims to a delivery callable.

    Delivery is at-most-once: a reminder whose delivery fails stays sent.
    """

    def __init__(
        self,
        store: Store,
        deliver: Deliver,
        interval_seconds: int = 60,
        clock: Callable[[], datetime] = datetime.now,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.store = store
        self.deliver = deliver
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.scheduler = scheduler or BackgroundScheduler()

    def tick(self, now: Optional[datetime] = None) -> list[Reminder]:
        claimed = scan_due(self.store, now or self.clock())
        for reminder in claimed:
            try:
                self.deliver(reminder)
            except Exception:  # noqa: BLE001
                logger.exception("Delivery failed for reminder %s; it will not be retried", reminder.id)
        return claimed

    def trigger_now(self) -> list[Reminder]:
        """Manual scan, safe to run alongside the scheduled one."""

        return self.tick()

    def start(self) -> None:
        self.scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval_seconds,
            id="reminder-scanner",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Reminder scanner started (every %ss)", self.interval_seconds)

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Reminder scanner stopped")
