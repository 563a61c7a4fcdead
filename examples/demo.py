"""Demo script for selfcare-engine."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from selfcare_engine.catalog import load_catalog
from selfcare_engine.engine import SelfCareEngine
from selfcare_engine.schema import CalendarEvent, ReminderPolicy
from selfcare_engine.store import Store

EXAMPLES_DIR = Path(__file__).resolve().parent


def main() -> None:
    now = datetime(2025, 11, 14, 10, 0)
    engine = SelfCareEngine(Store.in_memory(), load_catalog(), clock=lambda: now)
    engine.import_history(EXAMPLES_DIR / "sample_moods.csv", EXAMPLES_DIR / "sample_feedback.csv")

    engine.add_event(CalendarEvent("standup", "alice", "Team standup", now + timedelta(hours=1), now + timedelta(hours=2)))
    engine.attach_reminder("standup", ReminderPolicy.minutes_before(30))
    print("Due at +30m:", engine.scan_due(now + timedelta(minutes=30)))

    for rec in engine.recommend("alice", mood=2, count=3):
        print(f"{rec.confidence_score:3d}  {rec.title}  ({rec.personalized_reason})")

    print("Validation:", engine.validate_event_time(now.replace(hour=3), now.replace(hour=4)))
    print("Summary:", engine.feedback_summary("alice", now - timedelta(days=30)))


if __name__ == "__main__":
    main()
