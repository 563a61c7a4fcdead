"""SQLAlchemy persistence for events, reminders, mood entries and feedback."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from selfcare_engine.errors import UnknownEvent
from selfcare_engine.schema import (
    CalendarEvent,
    FeedbackAction,
    MoodEntry,
    RecommendationFeedback,
    Reminder,
    ReminderKind,
    ReminderPolicy,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


class EventRow(Base):
    __tablename__ = "events"
    id = Column(String, primary_key=True)
    user_id = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    category = Column(String)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    mood_rating = Column(Integer)


class ReminderRow(Base):
    __tablename__ = "reminders"
    id = Column(String, primary_key=True)
    event_id = Column(String, ForeignKey("events.id"), index=True, nullable=False)
    kind = Column(String, nullable=False)
    minutes = Column(Integer)
    hours = Column(Integer)
    trigger_at = Column(DateTime, index=True, nullable=False)
    sent = Column(Boolean, default=False, nullable=False)
    stale = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime)
    created_at = Column(DateTime)


class MoodEntryRow(Base):
    __tablename__ = "mood_entries"
    __table_args__ = (UniqueConstraint("user_id", "entry_date", name="uq_mood_user_date"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(String, index=True, nullable=False)
    entry_date = Column(Date, nullable=False)
    rating = Column(Integer, nullable=False)
    notes = Column(String)


class FeedbackRow(Base):
    __tablename__ = "recommendation_feedback"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, index=True, nullable=False)
    recommendation_id = Column(String, index=True, nullable=False)
    action = Column(String, nullable=False)  # FeedbackAction value
    mood_after = Column(Integer)
    notes = Column(String)
    submitted_at = Column(DateTime, nullable=False)


def _to_event(row: EventRow) -> CalendarEvent:
    return CalendarEvent(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        start=row.start,
        end=row.end,
        category=row.category,
        mood_rating=row.mood_rating,
    )


def _policy(row: ReminderRow) -> ReminderPolicy:
    return ReminderPolicy(ReminderKind(row.kind), minutes=row.minutes, hours=row.hours)


def _to_reminder(row: ReminderRow) -> Reminder:
    return Reminder(
        id=row.id,
        event_id=row.event_id,
        policy=_policy(row),
        trigger_at=row.trigger_at,
        sent=bool(row.sent),
        stale=bool(row.stale),
        sent_at=row.sent_at,
        created_at=row.created_at,
    )


def _to_mood(row: MoodEntryRow) -> MoodEntry:
    return MoodEntry(user_id=row.user_id, entry_date=row.entry_date, rating=row.rating, notes=row.notes)


def _to_feedback(row: FeedbackRow) -> RecommendationFeedback:
    return RecommendationFeedback(
        id=row.id,
        user_id=row.user_id,
        recommendation_id=row.recommendation_id,
        action=FeedbackAction(row.action),
        mood_after=row.mood_after,
        notes=row.notes,
        submitted_at=row.submitted_at,
    )


class Store:
    """Persistence collaborator used by the reminder and recommendation core."""

    def __init__(self, url: str = "sqlite:///selfcare.db", engine=None):
        if engine is None:
            connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
            engine = create_engine(url, connect_args=connect_args)
        self.engine = engine
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def in_memory(cls) -> "Store":
        """Single shared in-memory SQLite database with the schema created."""

        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        store = cls(engine=engine)
        store.create_all()
        return store

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    # events

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        with self.Session.begin() as session:
            session.add(
                EventRow(
                    id=event.id,
                    user_id=event.user_id,
                    title=event.title,
                    category=event.category,
                    start=event.start,
                    end=event.end,
                    mood_rating=event.mood_rating,
                )
            )
        return event

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        with self.Session() as session:
            row = session.get(EventRow, event_id)
            return _to_event(row) if row is not None else None

    def events_between(self, user_id: str, start: datetime, end: datetime) -> list[CalendarEvent]:
        with self.Session() as session:
            rows = session.execute(
                select(EventRow)
                .where(EventRow.user_id == user_id, EventRow.start >= start, EventRow.start < end)
                .order_by(EventRow.start)
            ).scalars()
            return [_to_event(row) for row in rows]

    def reschedule_event(
        self,
        event_id: str,
        start: datetime,
        end: datetime,
        retrigger: Callable[[ReminderPolicy, datetime], tuple[datetime, bool]],
    ) -> list[Reminder]:
        """Move an event and recompute its reminders in the same transaction.

        ``retrigger`` maps (policy, new start) to (trigger_at, stale). Sent
        reminders get the new trigger time but keep ``sent`` and ``stale``.
        """

        with self.Session.begin() as session:
            row = session.get(EventRow, event_id)
            if row is None:
                raise UnknownEvent(f"Event {event_id} does not exist")
            row.start = start
            row.end = end

            reminders = session.execute(
                select(ReminderRow).where(ReminderRow.event_id == event_id).order_by(ReminderRow.trigger_at)
            ).scalars()
            updated = []
            for reminder in reminders:
                trigger_at, stale = retrigger(_policy(reminder), start)
                reminder.trigger_at = trigger_at
                if not reminder.sent:
                    reminder.stale = stale
                updated.append(_to_reminder(reminder))
        return updated

    # reminders

    def add_reminder(self, reminder: Reminder) -> Reminder:
        if not reminder.id:
            reminder.id = uuid.uuid4().hex
        with self.Session.begin() as session:
            session.add(
                ReminderRow(
                    id=reminder.id,
                    event_id=reminder.event_id,
                    kind=reminder.policy.kind.value,
                    minutes=reminder.policy.minutes,
                    hours=reminder.policy.hours,
                    trigger_at=reminder.trigger_at,
                    sent=reminder.sent,
                    stale=reminder.stale,
                    sent_at=reminder.sent_at,
                    created_at=reminder.created_at,
                )
            )
        return reminder

    def get_reminder(self, reminder_id: str) -> Optional[Reminder]:
        with self.Session() as session:
            row = session.get(ReminderRow, reminder_id)
            return _to_reminder(row) if row is not None else None

    def reminders_for_event(self, event_id: str) -> list[Reminder]:
        with self.Session() as session:
            rows = session.execute(
                select(ReminderRow).where(ReminderRow.event_id == event_id).order_by(ReminderRow.trigger_at)
            ).scalars()
            return [_to_reminder(row) for row in rows]

    def delete_reminder(self, reminder_id: str) -> bool:
        with self.Session.begin() as session:
            row = session.get(ReminderRow, reminder_id)
            if row is None:
                return False
            session.delete(row)
        return True

    def claim_due(self, now: datetime) -> list[Reminder]:
        """Atomically mark due, unsent, non-stale reminders as sent and return them.

        Each claim is a conditional ``UPDATE ... WHERE sent = false``; a row
        counts as claimed only if this call flipped it.
        """

        claimed: list[Reminder] = []
        with self.Session.begin() as session:
            due = [
                _to_reminder(row)
                for row in session.execute(
                    select(ReminderRow)
                    .where(
                        ReminderRow.trigger_at <= now,
                        ReminderRow.sent.is_(False),
                        ReminderRow.stale.is_(False),
                    )
                    .order_by(ReminderRow.trigger_at, ReminderRow.id)
                ).scalars()
            ]
            for reminder in due:
                result = session.execute(
                    update(ReminderRow)
                    .where(ReminderRow.id == reminder.id, ReminderRow.sent.is_(False))
                    .values(sent=True, sent_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    reminder.sent = True
                    reminder.sent_at = now
                    claimed.append(reminder)
                else:
                    logger.debug("Reminder %s was claimed by another scan", reminder.id)
        return claimed

    # mood entries

    def upsert_mood(self, entry: MoodEntry) -> MoodEntry:
        with self.Session.begin() as session:
            row = session.execute(
                select(MoodEntryRow).where(
                    MoodEntryRow.user_id == entry.user_id,
                    MoodEntryRow.entry_date == entry.entry_date,
                )
            ).scalar_one_or_none()
            if row is None:
                row = MoodEntryRow(user_id=entry.user_id, entry_date=entry.entry_date)
                session.add(row)
            row.rating = entry.rating
            row.notes = entry.notes
        return entry

    def moods_between(self, user_id: str, start: date, end: date) -> list[MoodEntry]:
        """Mood entries with ``start <= entry_date <= end``, oldest first."""

        with self.Session() as session:
            rows = session.execute(
                select(MoodEntryRow)
                .where(
                    MoodEntryRow.user_id == user_id,
                    MoodEntryRow.entry_date >= start,
                    MoodEntryRow.entry_date <= end,
                )
                .order_by(MoodEntryRow.entry_date)
            ).scalars()
            return [_to_mood(row) for row in rows]

    # feedback

    def append_feedback(self, feedback: RecommendationFeedback) -> RecommendationFeedback:
        with self.Session.begin() as session:
            row = FeedbackRow(
                user_id=feedback.user_id,
                recommendation_id=feedback.recommendation_id,
                action=feedback.action.value,
                mood_after=feedback.mood_after,
                notes=feedback.notes,
                submitted_at=feedback.submitted_at,
            )
            session.add(row)
            session.flush()
            feedback.id = row.id
        return feedback

    def feedback_for_user(self, user_id: str, since: Optional[datetime] = None) -> list[RecommendationFeedback]:
        with self.Session() as session:
            query = select(FeedbackRow).where(FeedbackRow.user_id == user_id)
            if since is not None:
                query = query.where(FeedbackRow.submitted_at >= since)
            rows = session.execute(query.order_by(FeedbackRow.submitted_at, FeedbackRow.id)).scalars()
            return [_to_feedback(row) for row in rows]
