"""Configuration for the self-care engine."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator


def _check_hour(value: int) -> int:
    if not 0 <= value <= 23:
        raise ValueError("hour must be between 0 and 23")
    return value


class ReminderConfig(BaseModel):
    stale_grace_minutes: int = 2

    @field_validator("stale_grace_minutes")
    @classmethod
    def validate_grace(cls, v: int) -> int:
        if v < 0:
            raise ValueError("stale_grace_minutes cannot be negative")
        return v


class ScannerConfig(BaseModel):
    interval_seconds: int = 60

    @field_validator("interval_seconds")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError("interval_seconds must be at least 1")
        return v


class HistoryConfig(BaseModel):
    lookback_days: int = 90
    min_mood_samples: int = 3


class ScoringConfig(BaseModel):
    default_count: int = 5
    max_count: int = 10
    base_share: float = 0.7
    completion_weight: float = 15.0
    mood_impact_weight: float = 10.0
    congruence_weight: float = 5.0
    low_mood_threshold: int = 2
    social_start_hour: int = 9
    social_end_hour: int = 21
    cooldown_hours: int = 48
    feedback_window_days: int = 2

    @field_validator("base_share")
    @classmethod
    def validate_share(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("base_share must be in (0, 1]")
        return v

    @field_validator("social_start_hour", "social_end_hour")
    @classmethod
    def validate_hours(cls, v: int) -> int:
        return _check_hour(v)

    @model_validator(mode="after")
    def validate_ranges(self) -> "ScoringConfig":
        if not 1 <= self.default_count <= self.max_count:
            raise ValueError("default_count must be between 1 and max_count")
        if self.social_start_hour >= self.social_end_hour:
            raise ValueError("social_start_hour must be before social_end_hour")
        return self


class ValidatorConfig(BaseModel):
    early_hour: int = 6
    ai_enabled: bool = True
    timeout_seconds: float = 8.0

    @field_validator("early_hour")
    @classmethod
    def validate_early_hour(cls, v: int) -> int:
        return _check_hour(v)


class JudgeConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    timeout_seconds: float = 8.0


class EngineConfig(BaseModel):
    """Main configuration for the engine."""

    database_url: str = "sqlite:///selfcare.db"
    timezone: str = "UTC"
    catalog_path: Optional[Path] = None
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    judge: JudgeConfig = Field(default_factory=JudgeConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone '{v}'") from exc
        return v

    def now(self) -> datetime:
        """Current wall-clock time in the configured zone, as a naive datetime."""

        return datetime.now(ZoneInfo(self.timezone)).replace(tzinfo=None)


_ENV_OVERRIDES = {
    "SELFCARE_DATABASE_URL": ("database_url",),
    "SELFCARE_TIMEZONE": ("timezone",),
    "GEMINI_API_KEY": ("judge", "api_key"),
    "GEMINI_BASE_URL": ("judge", "base_url"),
}


def load_config(path: Optional[str | Path] = None) -> EngineConfig:
    """Load configuration from an optional YAML file plus environment overrides."""

    load_dotenv()

    data: dict = {}
    if path is not None:
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the top level")

    for env_name, keys in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if not value:
            continue
        target = data
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value

    return EngineConfig.model_validate(data)
