from datetime import date, datetime, timedelta

import httpx
import pytest

from selfcare_engine.catalog import load_catalog
from selfcare_engine.config import EngineConfig, JudgeConfig
from selfcare_engine.engine import SelfCareEngine, build_engine
from selfcare_engine.judge import GeminiJudge
from selfcare_engine.schema import CalendarEvent, ReminderPolicy, Severity
from selfcare_engine.store import Store

NOW = datetime(2025, 11, 14, 10, 0)


def sample_engine():
    return SelfCareEngine(Store.in_memory(), load_catalog(), clock=lambda: NOW)


def test_reminder_flow():
    engine = sample_engine()
    start = NOW + timedelta(hours=1)
    engine.add_event(CalendarEvent("e1", "u1", "Yoga", start, start + timedelta(hours=1)))
    reminder = engine.attach_reminder("e1", ReminderPolicy.minutes_before(15))
    assert engine.scan_due() == []
    assert [r.id for r in engine.scan_due(start)] == [reminder.id]

    with pytest.raises(ValueError):
        engine.add_event(CalendarEvent("e2", "u1", "Broken", start, start))


def test_recommend_and_feedback_summary():
    engine = sample_engine()
    recs = engine.recommend("u1", mood=3)
    assert recs
    engine.submit_feedback("u1", recs[0].id, "completed_now", mood_after=4)
    engine.submit_feedback("u1", recs[1].id, "dismissed")

    summary = engine.feedback_summary("u1", NOW - timedelta(days=1))
    assert (summary.total, summary.accepted, summary.rejected) == (2, 1, 1)
    assert summary.acceptance_rate == 50.0
    assert summary.average_mood_after == 4.0


def test_record_mood_upserts_per_day():
    engine = sample_engine()
    engine.record_mood("u1", 2, notes="tired")
    engine.record_mood("u1", 4)
    moods = engine.store.moods_between("u1", date(2025, 11, 1), date(2025, 11, 30))
    assert len(moods) == 1
    assert moods[0].rating == 4 and moods[0].notes is None
    with pytest.raises(ValueError):
        engine.record_mood("u1", 0)


def test_validate_event_time_without_ai():
    engine = sample_engine()
    early = engine.validate_event_time(NOW.replace(hour=3), NOW.replace(hour=4))
    assert early.severity == Severity.WARNING and not early.is_approved
    assert engine.validate_event_time(NOW.replace(hour=14), NOW.replace(hour=15)).is_approved


def test_import_history(tmp_path):
    moods = tmp_path / "moods.csv"
    moods.write_text("user_id,entry_date,rating\nu1,2025-11-10,2\nu1,2025-11-11,3\n", encoding="utf-8")
    feedback = tmp_path / "feedback.csv"
    feedback.write_text(
        "user_id,recommendation_id,action,submitted_at\nu1,walk-short-20251110-abc,dismissed,2025-11-10T12:00:00\n",
        encoding="utf-8",
    )
    engine = sample_engine()
    assert engine.import_history(moods, feedback) == (2, 1)
    assert len(engine.store.feedback_for_user("u1")) == 1


def test_build_engine_from_config(tmp_path):
    config = EngineConfig(database_url=f"sqlite:///{tmp_path / 'engine.db'}")
    engine = build_engine(config)
    assert engine.validator.judge is None
    assert engine.catalog.version == load_catalog().version
    engine.close()

    with_ai = build_engine(config.model_copy(update={"judge": JudgeConfig(api_key="k")}))
    assert isinstance(with_ai.validator.judge, GeminiJudge)
    with_ai.close()


def test_close_releases_judge_client(tmp_path):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    config = EngineConfig(database_url=f"sqlite:///{tmp_path / 'engine.db'}")
    engine = build_engine(config, judge=GeminiJudge("k", client=client))
    assert not client.is_closed
    engine.close()
    assert client.is_closed
