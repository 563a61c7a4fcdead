"""Deterministic recommendation identifiers."""

from __future__ import annotations

import hashlib
from datetime import date, datetime
from typing import NamedTuple, Optional

_DIGEST_LENGTH = 10


class ParsedId(NamedTuple):
    key: str
    day: date
    digest: str


def _digest(user_id: str, key: str, day: date) -> str:
    raw = f"{user_id}|{key}|{day.isoformat()}".encode("utf-8")
    return hashlib.sha1(raw).hexdigest()[:_DIGEST_LENGTH]


def recommendation_id(user_id: str, key: str, day: date) -> str:
    """Stable id for (user, candidate, day bucket)."""

    return f"{key}-{day:%Y%m%d}-{_digest(user_id, key, day)}"


def parse_recommendation_id(value: str) -> Optional[ParsedId]:
    parts = value.strip().rsplit("-", 2)
    if len(parts) != 3 or not all(parts):
        return None
    key, day_raw, digest = parts
    try:
        day = datetime.strptime(day_raw, "%Y%m%d").date()
    except ValueError:
        return None
    return ParsedId(key, day, digest)


def belongs_to(user_id: str, parsed: ParsedId) -> bool:
    return parsed.digest == _digest(user_id, parsed.key, parsed.day)
