"""Personalised self-care recommendation ranking and feedback ingestion."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from selfcare_engine.catalog import Catalog, matches_context
from selfcare_engine.config import HistoryConfig, ScoringConfig
from selfcare_engine.errors import UnknownRecommendation
from selfcare_engine.history import HistorySummary, Stats, aggregate_history, summarize_feedback
from selfcare_engine.ids import belongs_to, parse_recommendation_id, recommendation_id
from selfcare_engine.schema import (
    FeedbackAction,
    FeedbackSummary,
    Recommendation,
    RecommendationFeedback,
    SelfCareType,
    SuggestionCandidate,
)
from selfcare_engine.store import Store

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500


def _check_mood(value: Optional[int], name: str) -> None:
    if value is not None and not 1 <= value <= 5:
        raise ValueError(f"{name} must be between 1 and 5")


def parse_action(action: Union[FeedbackAction, str]) -> FeedbackAction:
    """Only the four known actions are accepted."""

    if isinstance(action, FeedbackAction):
        return action
    try:
        return FeedbackAction(str(action).strip())
    except ValueError as exc:
        raise ValueError(f"Unknown feedback action '{action}'") from exc


def is_low_mood(current_mood: Optional[int], cfg: ScoringConfig) -> bool:
    return current_mood is not None and current_mood <= cfg.low_mood_threshold


def _is_social(candidate: SuggestionCandidate) -> bool:
    return candidate.type == SelfCareType.SOCIAL or "social" in candidate.context_tags


def eligible_candidates(
    catalog: Catalog,
    moment: datetime,
    current_mood: Optional[int],
    summary: HistorySummary,
    cfg: ScoringConfig,
) -> list[SuggestionCandidate]:
    """Drop candidates that do not fit the current context."""

    low_mood = is_low_mood(current_mood, cfg)
    in_social_window = cfg.social_start_hour <= moment.hour < cfg.social_end_hour
    cooldown_start = moment - timedelta(hours=cfg.cooldown_hours)

    eligible = []
    for candidate in catalog.candidates:
        if not matches_context(candidate, moment):
            continue
        if "low_mood" in candidate.context_tags and not low_mood:
            continue
        if _is_social(candidate) and not in_social_window:
            continue
        last_feedback = summary.last_feedback_by_key.get(candidate.key)
        if last_feedback is not None and last_feedback > cooldown_start:
            continue
        eligible.append(candidate)
    return eligible


def confidence_score(
    candidate: SuggestionCandidate,
    stats: Stats,
    current_mood: Optional[int],
    cfg: ScoringConfig,
) -> int:
    """Blend the catalog prior with personal history into a 1..100 score.

    Missing statistics add nothing, so the score never drops below the
    base share of the catalog weight, and never below 1.
    """

    score = cfg.base_share * candidate.base_weight
    if stats.completion_rate is not None:
        score += cfg.completion_weight * stats.completion_rate / 100.0
    if stats.historical_mood_impact is not None:
        lift = max(0.0, (stats.historical_mood_impact - 50) / 50.0)
        score += cfg.mood_impact_weight * lift
        if is_low_mood(current_mood, cfg):
            score += cfg.congruence_weight * lift
    return max(1, int(round(min(100.0, score))))


def personalized_reason(candidate: SuggestionCandidate, stats: Stats) -> str:
    label = candidate.type.value
    parts = []
    if stats.completion_rate is not None:
        parts.append(f"You followed through on {stats.completion_rate}% of recent {label} suggestions.")
    if stats.historical_mood_impact is not None and stats.historical_mood_impact > 50:
        parts.append(f"{label.capitalize()} activities have lifted your mood before.")
    return " ".join(parts) or candidate.reason


def next_quarter_hour(moment: datetime) -> datetime:
    base = moment.replace(second=0, microsecond=0)
    return base + timedelta(minutes=15 - base.minute % 15)


class Recommender:
    """Rank catalog suggestions for a user and record their feedback."""

    def __init__(
        self,
        store: Store,
        catalog: Catalog,
        config: Optional[ScoringConfig] = None,
        history_config: Optional[HistoryConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.catalog = catalog
        self.config = config or ScoringConfig()
        self.history_config = history_config or HistoryConfig()
        self.clock = clock

    def history(self, user_id: str, now: datetime) -> HistorySummary:
        since = now - timedelta(days=self.history_config.lookback_days)
        return aggregate_history(
            feedback=self.store.feedback_for_user(user_id, since=since),
            moods=self.store.moods_between(user_id, since.date(), now.date()),
            events=self.store.events_between(user_id, since, now),
            catalog=self.catalog,
            now=now,
            lookback_days=self.history_config.lookback_days,
            min_samples=self.history_config.min_mood_samples,
        )

    def recommend(
        self,
        user_id: str,
        current_mood: Optional[int] = None,
        count: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[Recommendation]:
        """Return at most ``count`` recommendations, best first."""

        cfg = self.config
        count = cfg.default_count if count is None else count
        if count < 1:
            raise ValueError("count must be at least 1")
        count = min(count, cfg.max_count)
        _check_mood(current_mood, "current_mood")

        now = now or self.clock()
        summary = self.history(user_id, now)
        day = now.date()
        suggested_at = next_quarter_hour(now)

        ranked = []
        for candidate in eligible_candidates(self.catalog, now, current_mood, summary, cfg):
            stats = summary.for_type(candidate.type)
            ranked.append(
                Recommendation(
                    id=recommendation_id(user_id, candidate.key, day),
                    type=candidate.type,
                    title=candidate.title,
                    description=candidate.description,
                    duration_minutes=candidate.duration_minutes,
                    personalized_reason=personalized_reason(candidate, stats),
                    confidence_score=confidence_score(candidate, stats, current_mood, cfg),
                    historical_mood_impact=stats.historical_mood_impact,
                    completion_rate=stats.completion_rate,
                    suggested_datetime=suggested_at,
                )
            )

        ranked.sort(key=lambda r: (-r.confidence_score, r.duration_minutes, r.id))
        result = ranked[:count]
        logger.info(
            "Generated %d recommendation(s) for user %s on %s (catalog %s)",
            len(result),
            user_id,
            day.isoformat(),
            self.catalog.version,
        )
        return result

    def submit_feedback(
        self,
        user_id: str,
        recommendation_id: str,
        action: Union[FeedbackAction, str],
        mood_after: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RecommendationFeedback:
        """Append one feedback row for a recommendation this user could have received."""

        action = parse_action(action)
        _check_mood(mood_after, "mood_after")
        now = now or self.clock()
        sanitized_id = (recommendation_id or "").strip()
        self._correlate(user_id, sanitized_id, now)

        cleaned = notes.strip()[:MAX_NOTES_LENGTH] if notes and notes.strip() else None
        feedback = self.store.append_feedback(
            RecommendationFeedback(
                user_id=user_id,
                recommendation_id=sanitized_id,
                action=action,
                submitted_at=now,
                mood_after=mood_after,
                notes=cleaned,
            )
        )
        logger.info(
            "Recommendation feedback stored. User: %s, Recommendation: %s, Action: %s, MoodAfter: %s",
            user_id,
            sanitized_id,
            action.value,
            mood_after,
        )
        return feedback

    def feedback_summary(self, user_id: str, period_start: datetime, now: Optional[datetime] = None) -> FeedbackSummary:
        now = now or self.clock()
        return summarize_feedback(self.store.feedback_for_user(user_id, since=period_start), period_start, now)

    def _correlate(self, user_id: str, value: str, now: datetime) -> None:
        parsed = parse_recommendation_id(value)
        if parsed is None or self.catalog.get(parsed.key) is None or not belongs_to(user_id, parsed):
            raise UnknownRecommendation(f"Recommendation '{value}' is not known for user {user_id}")
        age_days = (now.date() - parsed.day).days
        if age_days < 0 or age_days > self.config.feedback_window_days:
            raise UnknownRecommendation(f"Recommendation '{value}' is outside the feedback window")
