"""Behavior history aggregation for personalised scoring."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

import numpy as np

from selfcare_engine.catalog import Catalog
from selfcare_engine.ids import parse_recommendation_id
from selfcare_engine.schema import (
    CalendarEvent,
    FeedbackAction,
    FeedbackSummary,
    MoodEntry,
    RecommendationFeedback,
    SelfCareType,
)

_MOOD_SPAN = 4.0  # ratings are 1..5, so deltas fall within -4..4
_ACCEPTED = {FeedbackAction.SCHEDULED, FeedbackAction.COMPLETED_NOW}
_COUNTED = {FeedbackAction.COMPLETED_NOW, FeedbackAction.DISMISSED, FeedbackAction.IGNORED}


@dataclass
class Stats:
    """Percentages in 0..100, or None when there is not enough data."""

    completion_rate: Optional[int] = None
    historical_mood_impact: Optional[int] = None
    samples: int = 0


@dataclass
class HistorySummary:
    by_type: dict[SelfCareType, Stats] = field(default_factory=dict)
    by_category: dict[str, Stats] = field(default_factory=dict)
    recent_mood_average: Optional[float] = None
    last_feedback_by_key: dict[str, datetime] = field(default_factory=dict)

    def for_type(self, kind: SelfCareType) -> Stats:
        return self.by_type.get(kind, Stats())


def _clamp_pct(value: float) -> int:
    return int(round(float(np.clip(value, 0.0, 100.0))))


def completion_rate(completed: int, counted: int) -> Optional[int]:
    if counted <= 0:
        return None
    return _clamp_pct(100.0 * completed / counted)


def mood_impact(pairs: list[tuple[int, float]], min_samples: int = 3) -> Optional[int]:
    """Scale mean(after) - mean(baseline) from -4..4 onto 0..100 (50 = neutral)."""

    if len(pairs) < max(1, min_samples):
        return None
    values = np.asarray(pairs, dtype=float)
    delta = float(values[:, 0].mean() - values[:, 1].mean())
    return _clamp_pct((delta + _MOOD_SPAN) / (2 * _MOOD_SPAN) * 100.0)


def latest_feedback(feedback: Iterable[RecommendationFeedback]) -> list[RecommendationFeedback]:
    """Keep only the most recent feedback per recommendation id."""

    latest: dict[str, RecommendationFeedback] = {}
    for item in sorted(feedback, key=lambda f: (f.submitted_at, f.id or 0)):
        latest[item.recommendation_id] = item
    return list(latest.values())


def _baseline(moods: list[MoodEntry]):
    by_day = {entry.entry_date: float(entry.rating) for entry in moods}
    fallback = float(np.mean(list(by_day.values()))) if by_day else None

    def lookup(day: date) -> Optional[float]:
        return by_day.get(day, fallback)

    return lookup


def aggregate_history(
    feedback: Iterable[RecommendationFeedback],
    moods: Iterable[MoodEntry],
    events: Iterable[CalendarEvent],
    catalog: Catalog,
    now: datetime,
    lookback_days: int = 90,
    min_samples: int = 3,
) -> HistorySummary:
    """Summarise a user's feedback, mood entries and events over a lookback window."""

    since = now - timedelta(days=lookback_days)
    window_moods = sorted(
        (m for m in moods if since.date() <= m.entry_date <= now.date()),
        key=lambda m: m.entry_date,
    )
    baseline = _baseline(window_moods)

    window_feedback = latest_feedback(f for f in feedback if since <= f.submitted_at <= now)

    type_completed = Counter()
    type_counted = Counter()
    type_samples = Counter()
    type_pairs: dict[SelfCareType, list[tuple[int, float]]] = defaultdict(list)
    last_by_key: dict[str, datetime] = {}

    for item in window_feedback:
        parsed = parse_recommendation_id(item.recommendation_id)
        if parsed is None:
            continue
        candidate = catalog.get(parsed.key)
        if candidate is None:
            continue

        kind = candidate.type
        type_samples[kind] += 1
        previous = last_by_key.get(parsed.key)
        if previous is None or item.submitted_at > previous:
            last_by_key[parsed.key] = item.submitted_at

        if item.action in _COUNTED:
            type_counted[kind] += 1
            if item.action == FeedbackAction.COMPLETED_NOW:
                type_completed[kind] += 1

        if item.mood_after is not None:
            before = baseline(item.submitted_at.date())
            if before is not None:
                type_pairs[kind].append((item.mood_after, before))

    by_type = {
        kind: Stats(
            completion_rate=completion_rate(type_completed[kind], type_counted[kind]),
            historical_mood_impact=mood_impact(type_pairs[kind], min_samples),
            samples=type_samples[kind],
        )
        for kind in type_samples
    }

    category_total = Counter()
    category_rated = Counter()
    category_pairs: dict[str, list[tuple[int, float]]] = defaultdict(list)
    for event in events:
        if not event.category or event.start < since or event.end > now:
            continue
        category_total[event.category] += 1
        if event.mood_rating is not None:
            category_rated[event.category] += 1
            before = baseline(event.start.date())
            if before is not None:
                category_pairs[event.category].append((event.mood_rating, before))

    by_category = {
        category: Stats(
            completion_rate=completion_rate(category_rated[category], total),
            historical_mood_impact=mood_impact(category_pairs[category], min_samples),
            samples=total,
        )
        for category, total in category_total.items()
    }

    recent = [m.rating for m in window_moods[-7:]]
    recent_average = round(float(np.mean(recent)), 2) if recent else None

    return HistorySummary(
        by_type=by_type,
        by_category=by_category,
        recent_mood_average=recent_average,
        last_feedback_by_key=last_by_key,
    )


def summarize_feedback(
    feedback: Iterable[RecommendationFeedback],
    period_start: datetime,
    now: datetime,
) -> FeedbackSummary:
    """Acceptance and mood-after summary of feedback submitted since ``period_start``."""

    if period_start > now:
        raise ValueError("period_start cannot be in the future")

    entries = latest_feedback(f for f in feedback if period_start <= f.submitted_at <= now)
    if not entries:
        return FeedbackSummary(0, 0, 0, 0.0, None, period_start, now)

    accepted = sum(1 for f in entries if f.action in _ACCEPTED)
    moods = [f.mood_after for f in entries if f.mood_after is not None]
    return FeedbackSummary(
        total=len(entries),
        accepted=accepted,
        rejected=len(entries) - accepted,
        acceptance_rate=round(accepted / len(entries) * 100, 1),
        average_mood_after=round(float(np.mean(moods)), 2) if moods else None,
        period_start=period_start,
        period_end=now,
    )
