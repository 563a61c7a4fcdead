"""Versioned suggestion catalog and context filtering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from selfcare_engine.adapters import json_adapter
from selfcare_engine.schema import SuggestionCandidate

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "catalog.json"

_TIME_OF_DAY_TAGS = {"morning", "afternoon", "evening"}
_DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_DAY_TAGS = {"weekday", "weekend", *_DAY_NAMES}


@dataclass(frozen=True)
class Catalog:
    version: str
    candidates: tuple[SuggestionCandidate, ...]

    def get(self, key: str) -> Optional[SuggestionCandidate]:
        for candidate in self.candidates:
            if candidate.key == key:
                return candidate
        return None


def load_catalog(path: Optional[str | Path] = None) -> Catalog:
    """Load a catalog file, falling back to the packaged default."""

    version, candidates = json_adapter.parse(str(path or DEFAULT_CATALOG_PATH))
    return Catalog(version=version, candidates=tuple(candidates))


def time_of_day(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    return "evening"


def context_tags(moment: datetime) -> set[str]:
    """Tags describing a moment: time of day, weekday name, weekday/weekend."""

    day = _DAY_NAMES[moment.weekday()]
    return {time_of_day(moment.hour), day, "weekend" if moment.weekday() >= 5 else "weekday"}


def matches_context(candidate: SuggestionCandidate, moment: datetime) -> bool:
    """True when the candidate's time and day tags fit the moment.

    Untagged dimensions match anything.
    """

    tags = context_tags(moment)
    time_tags = candidate.context_tags & _TIME_OF_DAY_TAGS
    if time_tags and not time_tags & tags:
        return False
    day_tags = candidate.context_tags & _DAY_TAGS
    if day_tags and not day_tags & tags:
        return False
    return True
