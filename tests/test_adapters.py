import json

import pytest

from selfcare_engine.adapters.csv_adapter import parse_feedback, parse_moods
from selfcare_engine.adapters.json_adapter import parse as parse_catalog
from selfcare_engine.catalog import load_catalog
from selfcare_engine.schema import FeedbackAction, SelfCareType


def write_catalog(tmp_path, candidates, version="1"):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"version": version, "candidates": candidates}), encoding="utf-8")
    return str(path)


def item(**overrides):
    base = {"key": "walk", "type": "physical", "title": "Walk", "duration_minutes": 15, "base_weight": 80}
    base.update(overrides)
    return base


def test_default_catalog_loads():
    catalog = load_catalog()
    assert catalog.version
    assert len(catalog.candidates) >= 20
    assert catalog.get("walk-short").type == SelfCareType.PHYSICAL
    assert "low_mood" in catalog.get("lowmood-breathe").context_tags
    assert catalog.get("nope") is None


def test_catalog_parse_success(tmp_path):
    path = write_catalog(tmp_path, [item(tags=["Morning", "weekday"], reason="Fresh air")])
    version, candidates = parse_catalog(path)
    assert version == "1"
    assert candidates[0].context_tags == frozenset({"morning", "weekday"})
    assert candidates[0].reason == "Fresh air"


@pytest.mark.parametrize(
    "bad",
    [
        item(type="spiritual"),
        item(base_weight=0),
        item(base_weight=120),
        item(duration_minutes=-5),
        item(duration_minutes="soon"),
        item(tags=["midnight"]),
        {"key": "walk", "type": "physical"},
    ],
)
def test_catalog_parse_invalid_item(tmp_path, bad):
    with pytest.raises(ValueError, match="Item 1"):
        parse_catalog(write_catalog(tmp_path, [bad]))


def test_catalog_rejects_duplicates_and_missing_version(tmp_path):
    with pytest.raises(ValueError):
        parse_catalog(write_catalog(tmp_path, [item(), item()]))
    with pytest.raises(ValueError):
        parse_catalog(write_catalog(tmp_path, [item()], version=""))


def test_csv_moods_parse_success(tmp_path):
    path = tmp_path / "moods.csv"
    path.write_text(
        "user_id,entry_date,rating,notes\n"
        "u1,2025-11-01,3,\n"
        "u1,2025-11-02,5,great run\n",
        encoding="utf-8",
    )
    moods = parse_moods(str(path))
    assert len(moods) == 2
    assert moods[0].notes is None
    assert moods[1].rating == 5 and moods[1].notes == "great run"


def test_csv_moods_invalid_row(tmp_path):
    path = tmp_path / "moods.csv"
    path.write_text("user_id,entry_date,rating\nu1,2025-11-01,3\nu1,2025-11-02,9\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Row 3"):
        parse_moods(str(path))


def test_csv_feedback_parse(tmp_path):
    path = tmp_path / "feedback.csv"
    path.write_text(
        "user_id,recommendation_id,action,submitted_at,mood_after,notes\n"
        "u1,walk-short-20251110-abc,completed_now,2025-11-10T12:30:00,4,\n",
        encoding="utf-8",
    )
    rows = parse_feedback(str(path))
    assert rows[0].action == FeedbackAction.COMPLETED_NOW
    assert rows[0].mood_after == 4


def test_csv_feedback_invalid_action(tmp_path):
    path = tmp_path / "feedback.csv"
    path.write_text(
        "user_id,recommendation_id,action,submitted_at\nu1,x-20251110-abc,snoozed,2025-11-10T12:30:00\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        parse_feedback(str(path))
