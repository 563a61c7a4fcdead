"""Core data schema for reminders, mood history and self-care recommendations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class ReminderKind(str, Enum):
    FIXED_MINUTES_BEFORE = "fixed_minutes_before"
    ONE_DAY_BEFORE = "one_day_before"
    CUSTOM = "custom"


class FeedbackAction(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED_NOW = "completed_now"
    DISMISSED = "dismissed"
    IGNORED = "ignored"


class SelfCareType(str, Enum):
    PHYSICAL = "physical"
    MENTAL = "mental"
    SOCIAL = "social"
    CREATIVE = "creative"
    REST = "rest"


class Severity(int, Enum):
    """Ordered so that the stricter verdict compares greater."""

    INFO = 0
    WARNING = 1
    ERROR = 2


@dataclass(frozen=True)
class ReminderPolicy:
    """Rule describing when, relative to an event start, a reminder fires."""

    kind: ReminderKind
    minutes: Optional[int] = None
    hours: Optional[int] = None

    @classmethod
    def minutes_before(cls, minutes: int) -> "ReminderPolicy":
        return cls(ReminderKind.FIXED_MINUTES_BEFORE, minutes=minutes)

    @classmethod
    def one_day_before(cls) -> "ReminderPolicy":
        return cls(ReminderKind.ONE_DAY_BEFORE)

    @classmethod
    def custom(cls, hours: Optional[int] = None, minutes: Optional[int] = None) -> "ReminderPolicy":
        return cls(ReminderKind.CUSTOM, minutes=minutes, hours=hours)


@dataclass
class CalendarEvent:
    """Event as seen by the core; owned by the planner's event store."""

    id: str
    user_id: str
    title: str
    start: datetime
    end: datetime
    category: Optional[str] = None
    mood_rating: Optional[int] = None


@dataclass
class Reminder:
    id: str
    event_id: str
    policy: ReminderPolicy
    trigger_at: datetime
    sent: bool = False
    stale: bool = False
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class MoodEntry:
    """One mood rating per user per calendar day."""

    user_id: str
    entry_date: date
    rating: int
    notes: Optional[str] = None


@dataclass
class RecommendationFeedback:
    user_id: str
    recommendation_id: str
    action: FeedbackAction
    submitted_at: datetime
    mood_after: Optional[int] = None
    notes: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class SuggestionCandidate:
    """Catalog entry that can be turned into a recommendation."""

    key: str
    type: SelfCareType
    title: str
    description: str
    duration_minutes: int
    base_weight: float
    context_tags: frozenset = frozenset()
    reason: str = ""


@dataclass
class Recommendation:
    id: str
    type: SelfCareType
    title: str
    description: str
    duration_minutes: int
    personalized_reason: str
    confidence_score: int
    historical_mood_impact: Optional[int] = None
    completion_rate: Optional[int] = None
    suggested_datetime: Optional[datetime] = None


@dataclass
class ValidationContext:
    """Free-form context handed to the event-time validator."""

    title: Optional[str] = None
    category: Optional[str] = None
    nearby_events: list[CalendarEvent] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class ValidationResult:
    is_approved: bool
    recommendation_message: str
    severity: Severity
    suggestions: list[str] = field(default_factory=list)
    used_ai: bool = False


@dataclass
class Verdict:
    """Advisory judgment returned by an external judge."""

    verdict_text: str
    suggested_severity: Optional[Severity] = None
    suggestions: list[str] = field(default_factory=list)


@dataclass
class FeedbackSummary:
    total: int
    accepted: int
    rejected: int
    acceptance_rate: float
    average_mood_after: Optional[float]
    period_start: datetime
    period_end: datetime
