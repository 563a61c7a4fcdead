"""Run the due-reminder scanner against the configured database."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from selfcare_engine.config import load_config
from selfcare_engine.scanner import ReminderScanner
from selfcare_engine.schema import Reminder
from selfcare_engine.store import Store

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger("run_scanner")


def log_delivery(reminder: Reminder) -> None:
    logger.info("Reminder %s for event %s (due %s)", reminder.id, reminder.event_id, reminder.trigger_at.isoformat())


def main() -> None:
    parser = argparse.ArgumentParser(description="Scan and deliver due self-care reminders")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--once", action="store_true", help="Run a single scan and exit")
    args = parser.parse_args()

    config = load_config(args.config)
    store = Store(config.database_url)
    store.create_all()
    scanner = ReminderScanner(
        store,
        log_delivery,
        interval_seconds=config.scanner.interval_seconds,
        clock=config.now,
    )

    if args.once:
        claimed = scanner.tick()
        print(f"Delivered {len(claimed)} reminder(s)")
        return

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    scanner.start()
    try:
        stop.wait()
    finally:
        scanner.shutdown()


if __name__ == "__main__":
    main()
