"""CSV adapter for mood and recommendation-feedback history exports."""

from __future__ import annotations

import csv
from datetime import date, datetime
from typing import Optional

from selfcare_engine.schema import FeedbackAction, MoodEntry, RecommendationFeedback

_MOOD_FIELDS = {"user_id", "entry_date", "rating"}
_FEEDBACK_FIELDS = {"user_id", "recommendation_id", "action", "submitted_at"}
_VALID_ACTIONS = {a.value for a in FeedbackAction}


def _rating(raw: Optional[str], row_number: int, field: str) -> Optional[int]:
    if raw in (None, ""):
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Row {row_number}: invalid {field}") from exc
    if not 1 <= value <= 5:
        raise ValueError(f"Row {row_number}: {field} must be between 1 and 5")
    return value


def _notes(raw: Optional[str]) -> Optional[str]:
    return raw.strip() if raw and raw.strip() else None


def _parse_mood_row(row: dict, row_number: int) -> MoodEntry:
    missing = sorted(field for field in _MOOD_FIELDS if not row.get(field))
    if missing:
        raise ValueError(f"Row {row_number}: missing required fields {missing}")

    try:
        entry_date = date.fromisoformat(row["entry_date"].strip())
    except ValueError as exc:
        raise ValueError(f"Row {row_number}: malformed entry_date") from exc

    return MoodEntry(
        user_id=row["user_id"].strip(),
        entry_date=entry_date,
        rating=_rating(row["rating"], row_number, "rating"),
        notes=_notes(row.get("notes")),
    )


def _parse_feedback_row(row: dict, row_number: int) -> RecommendationFeedback:
    missing = sorted(field for field in _FEEDBACK_FIELDS if not row.get(field))
    if missing:
        raise ValueError(f"Row {row_number}: missing required fields {missing}")

    try:
        submitted_at = datetime.fromisoformat(row["submitted_at"].strip())
    except ValueError as exc:
        raise ValueError(f"Row {row_number}: malformed submitted_at") from exc

    action = row["action"].strip()
    if action not in _VALID_ACTIONS:
        raise ValueError(f"Row {row_number}: invalid action '{action}'")

    return RecommendationFeedback(
        user_id=row["user_id"].strip(),
        recommendation_id=row["recommendation_id"].strip(),
        action=FeedbackAction(action),
        submitted_at=submitted_at,
        mood_after=_rating(row.get("mood_after"), row_number, "mood_after"),
        notes=_notes(row.get("notes")),
    )


def _read(file_path: str, parse_row) -> list:
    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []
        return [parse_row(row, row_number) for row_number, row in enumerate(reader, start=2)]


def parse_moods(file_path: str) -> list[MoodEntry]:
    """Parse a mood export (user_id, entry_date, rating, notes)."""

    return _read(file_path, _parse_mood_row)


def parse_feedback(file_path: str) -> list[RecommendationFeedback]:
    """Parse a feedback export (user_id, recommendation_id, action, submitted_at, mood_after, notes)."""

    return _read(file_path, _parse_feedback_row)
