"""External AI judgment of proposed event times."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from selfcare_engine.errors import ExternalServiceUnavailable
from selfcare_engine.schema import Severity, Verdict

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"

_SEVERITIES = {
    "info": Severity.INFO,
    "warning": Severity.WARNING,
    "error": Severity.ERROR,
    "critical": Severity.ERROR,
}

PROMPT_TEMPLATE = """You review calendar events for a personal planner.
Decide whether the proposed time slot is sensible for the user.

Proposed start: {start}
Proposed end: {end}
Context:
{context}

Answer ONLY with JSON, no extra text:
{{"verdictText": "one or two sentences for the user",
  "suggestedSeverity": "info" | "warning" | "error",
  "suggestions": ["short actionable suggestion", "..."]}}"""


class Judge(Protocol):
    """Advisory judge. Raises ExternalServiceUnavailable on any failure."""

    def judge(self, start: datetime, end: datetime, context: str) -> Verdict: ...


class _VerdictPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    verdict_text: str = Field(alias="verdictText", min_length=1)
    suggested_severity: Optional[str] = Field(default=None, alias="suggestedSeverity")
    suggestions: list[str] = Field(default_factory=list)


def build_prompt(start: datetime, end: datetime, context: str) -> str:
    return PROMPT_TEMPLATE.format(start=start.isoformat(), end=end.isoformat(), context=context or "(none)")


def parse_verdict(text: str) -> Verdict:
    """Extract the JSON verdict embedded in a model answer."""

    begin = text.find("{")
    finish = text.rfind("}") + 1
    if begin < 0 or finish <= begin:
        raise ExternalServiceUnavailable("Judge answer did not contain a JSON object")

    try:
        payload = _VerdictPayload.model_validate(json.loads(text[begin:finish]))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ExternalServiceUnavailable("Judge answer was not a valid verdict") from exc

    severity = None
    if payload.suggested_severity is not None:
        severity = _SEVERITIES.get(payload.suggested_severity.strip().lower())
        if severity is None:
            raise ExternalServiceUnavailable(f"Unknown severity '{payload.suggested_severity}'")

    suggestions = [s.strip() for s in payload.suggestions if s and s.strip()]
    return Verdict(verdict_text=payload.verdict_text.strip(), suggested_severity=severity, suggestions=suggestions)


class GeminiJudge:
    """Judge backed by the Gemini generateContent HTTP API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 8.0,
        client: Optional[httpx.Client] = None,
    ):
        if not api_key:
            raise ValueError("A Gemini API key is required")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.client = client or httpx.Client(timeout=timeout_seconds)

    def judge(self, start: datetime, end: datetime, context: str) -> Verdict:
        request = {"contents": [{"parts": [{"text": build_prompt(start, end, context)}]}]}
        logger.debug("Judge request: %s", request)

        try:
            response = self.client.post(
                self.base_url,
                params={"key": self.api_key},
                json=request,
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise ExternalServiceUnavailable(f"Judge request failed: {exc}") from exc

        if not response.is_success:
            raise ExternalServiceUnavailable(f"Judge returned HTTP {response.status_code}")

        logger.debug("Judge response: %s", response.text)
        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ExternalServiceUnavailable("Judge response had an unexpected shape") from exc
        if not isinstance(text, str) or not text.strip():
            raise ExternalServiceUnavailable("Judge response was empty")

        return parse_verdict(text)

    def close(self) -> None:
        self.client.close()
