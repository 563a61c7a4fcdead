"""JSON adapter for the versioned suggestion catalog."""

from __future__ import annotations

import json

from selfcare_engine.schema import SelfCareType, SuggestionCandidate

_REQUIRED_FIELDS = {"key", "type", "title", "duration_minutes", "base_weight"}
_VALID_TYPES = {t.value for t in SelfCareType}
VALID_TAGS = {
    "morning",
    "afternoon",
    "evening",
    "weekday",
    "weekend",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
    "low_mood",
    "social",
}


def _parse_item(item: dict, index: int) -> SuggestionCandidate:
    if not isinstance(item, dict):
        raise ValueError(f"Item {index}: expected an object")

    missing = sorted(field for field in _REQUIRED_FIELDS if item.get(field) in (None, ""))
    if missing:
        raise ValueError(f"Item {index}: missing required fields {missing}")

    kind = str(item["type"]).strip().lower()
    if kind not in _VALID_TYPES:
        raise ValueError(f"Item {index}: invalid type '{kind}'")

    try:
        duration = int(item["duration_minutes"])
        weight = float(item["base_weight"])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Item {index}: duration_minutes and base_weight must be numeric") from exc

    if duration <= 0:
        raise ValueError(f"Item {index}: duration_minutes must be positive")
    if not 0 < weight <= 100:
        raise ValueError(f"Item {index}: base_weight must be within (0, 100]")

    tags = frozenset(str(tag).strip().lower() for tag in item.get("tags") or [])
    unknown = sorted(tags - VALID_TAGS)
    if unknown:
        raise ValueError(f"Item {index}: unknown tags {unknown}")

    return SuggestionCandidate(
        key=str(item["key"]).strip(),
        type=SelfCareType(kind),
        title=str(item["title"]).strip(),
        description=str(item.get("description") or "").strip(),
        duration_minutes=duration,
        base_weight=weight,
        context_tags=tags,
        reason=str(item.get("reason") or "").strip(),
    )


def parse(file_path: str) -> tuple[str, list[SuggestionCandidate]]:
    """Parse a catalog JSON file into its version and candidate list."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if not isinstance(payload, dict):
        raise ValueError("Catalog payload must be an object with 'version' and 'candidates'")

    version = str(payload.get("version") or "").strip()
    if not version:
        raise ValueError("Catalog is missing a version")

    items = payload.get("candidates")
    if not isinstance(items, list):
        raise ValueError("Catalog 'candidates' must be a list of objects")

    candidates = [_parse_item(item, i) for i, item in enumerate(items, start=1)]
    keys = [c.key for c in candidates]
    duplicates = sorted({k for k in keys if keys.count(k) > 1})
    if duplicates:
        raise ValueError(f"Catalog has duplicate keys {duplicates}")
    return version, candidates
