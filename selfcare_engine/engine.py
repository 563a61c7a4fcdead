"""Request-facing facade over reminders, recommendations and validation."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Union

from selfcare_engine.adapters import csv_adapter
from selfcare_engine.catalog import Catalog, load_catalog
from selfcare_engine.config import EngineConfig
from selfcare_engine.judge import GeminiJudge, Judge
from selfcare_engine.reminders import ReminderService
from selfcare_engine.scanner import scan_due
from selfcare_engine.schema import (
    CalendarEvent,
    FeedbackAction,
    FeedbackSummary,
    MoodEntry,
    Recommendation,
    RecommendationFeedback,
    Reminder,
    ReminderPolicy,
    ValidationContext,
    ValidationResult,
)
from selfcare_engine.scoring import MAX_NOTES_LENGTH, Recommender
from selfcare_engine.store import Store
from selfcare_engine.validator import EventTimeValidator

logger = logging.getLogger(__name__)


class SelfCareEngine:
    """Single entry point for the planner's request handlers."""

    def __init__(
        self,
        store: Store,
        catalog: Catalog,
        config: Optional[EngineConfig] = None,
        judge: Optional[Judge] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or EngineConfig()
        self.store = store
        self.catalog = catalog
        self.clock = clock or self.config.now
        self.reminders = ReminderService(
            store,
            grace=timedelta(minutes=self.config.reminders.stale_grace_minutes),
            clock=self.clock,
        )
        self.recommender = Recommender(
            store,
            catalog,
            config=self.config.scoring,
            history_config=self.config.history,
            clock=self.clock,
        )
        self.validator = EventTimeValidator(judge=judge, config=self.config.validator)

    # events and reminders

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        if event.end <= event.start:
            raise ValueError("Event end must be after its start")
        return self.store.add_event(event)

    def attach_reminder(self, event_id: str, policy: ReminderPolicy) -> Reminder:
        return self.reminders.attach_reminder(event_id, policy, now=self.clock())

    def reschedule_event(self, event_id: str, start: datetime, end: datetime) -> list[Reminder]:
        return self.reminders.reschedule_event(event_id, start, end, now=self.clock())

    def scan_due(self, now: Optional[datetime] = None) -> list[Reminder]:
        return scan_due(self.store, now or self.clock())

    # mood and recommendations

    def record_mood(self, user_id: str, rating: int, entry_date: Optional[date] = None, notes: Optional[str] = None) -> MoodEntry:
        """Store today's (or ``entry_date``'s) mood, replacing any earlier rating that day."""

        if not 1 <= rating <= 5:
            raise ValueError("rating must be between 1 and 5")
        cleaned = notes.strip()[:MAX_NOTES_LENGTH] if notes and notes.strip() else None
        entry = MoodEntry(user_id=user_id, entry_date=entry_date or self.clock().date(), rating=rating, notes=cleaned)
        return self.store.upsert_mood(entry)

    def recommend(self, user_id: str, mood: Optional[int] = None, count: Optional[int] = None) -> list[Recommendation]:
        return self.recommender.recommend(user_id, current_mood=mood, count=count)

    def submit_feedback(
        self,
        user_id: str,
        recommendation_id: str,
        action: Union[FeedbackAction, str],
        mood_after: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> RecommendationFeedback:
        return self.recommender.submit_feedback(user_id, recommendation_id, action, mood_after=mood_after, notes=notes)

    def feedback_summary(self, user_id: str, period_start: Optional[datetime] = None) -> FeedbackSummary:
        now = self.clock()
        start = period_start or now - timedelta(days=30)
        return self.recommender.feedback_summary(user_id, start, now=now)

    def import_history(
        self,
        moods_csv: Optional[Union[str, Path]] = None,
        feedback_csv: Optional[Union[str, Path]] = None,
    ) -> tuple[int, int]:
        """Seed mood and feedback history from CSV exports.

        Imported feedback is taken as-is; it is not checked against the
        catalog the way live submissions are.
        """

        moods = csv_adapter.parse_moods(str(moods_csv)) if moods_csv else []
        feedback = csv_adapter.parse_feedback(str(feedback_csv)) if feedback_csv else []
        for entry in moods:
            self.store.upsert_mood(entry)
        for item in feedback:
            self.store.append_feedback(item)
        logger.info("Imported %d mood entries and %d feedback rows", len(moods), len(feedback))
        return len(moods), len(feedback)

    # validation

    def validate_event_time(
        self,
        start: datetime,
        end: datetime,
        context: Optional[ValidationContext] = None,
    ) -> ValidationResult:
        return self.validator.validate(start, end, context)

    def close(self) -> None:
        self.validator.close()
        close_judge = getattr(self.validator.judge, "close", None)
        if close_judge is not None:
            close_judge()


def build_engine(config: Optional[EngineConfig] = None, judge: Optional[Judge] = None) -> SelfCareEngine:
    """Wire an engine from configuration.

    The Gemini judge is only created when an API key is configured; without
    one, validation runs on deterministic rules alone.
    """

    config = config or EngineConfig()
    store = Store(config.database_url)
    store.create_all()
    catalog = load_catalog(config.catalog_path)

    if judge is None and config.judge.api_key:
        judge = GeminiJudge(
            api_key=config.judge.api_key,
            base_url=config.judge.base_url,
            timeout_seconds=config.judge.timeout_seconds,
        )
    logger.info(
        "Engine ready: database=%s catalog=%s ai=%s",
        config.database_url,
        catalog.version,
        "on" if judge is not None and config.validator.ai_enabled else "off",
    )
    return SelfCareEngine(store, catalog, config=config, judge=judge)
