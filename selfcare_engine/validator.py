"""Event-time validation: deterministic rules with optional advisory AI judgment."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime, time
from typing import Optional

from selfcare_engine.config import ValidatorConfig
from selfcare_engine.errors import ExternalServiceUnavailable
from selfcare_engine.judge import Judge
from selfcare_engine.schema import Severity, ValidationContext, ValidationResult, Verdict

logger = logging.getLogger(__name__)


def describe_context(context: Optional[ValidationContext]) -> str:
    """Render the validation context as plain text for the judge."""

    if context is None:
        return ""
    lines = []
    if context.title:
        lines.append(f"Event title: {context.title}")
    if context.category:
        lines.append(f"Category: {context.category}")
    if context.nearby_events:
        lines.append("Other events nearby:")
        for event in sorted(context.nearby_events, key=lambda e: e.start):
            lines.append(f"- {event.title}: {event.start:%Y-%m-%d %H:%M} to {event.end:%H:%M}")
    if context.notes:
        lines.append(f"Notes: {context.notes}")
    return "\n".join(lines)


def baseline_verdict(start: datetime, end: datetime, early_hour: int = 6) -> ValidationResult:
    """Deterministic verdict; this is the fallback of record."""

    if end <= start:
        return ValidationResult(
            is_approved=False,
            recommendation_message="The event has to end after it starts.",
            severity=Severity.ERROR,
            suggestions=["Check the start and end times"],
        )

    threshold = time(hour=early_hour)
    if start.time() < threshold:
        return ValidationResult(
            is_approved=False,
            recommendation_message=(
                f"Starting at {start:%H:%M} is earlier than {threshold:%H:%M}; "
                "very early events tend to cut into sleep."
            ),
            severity=Severity.WARNING,
            suggestions=[f"Move the event to {threshold:%H:%M} or later", "Consider a slot later in the day"],
        )

    return ValidationResult(
        is_approved=True,
        recommendation_message="The proposed time looks reasonable.",
        severity=Severity.INFO,
    )


def merge_verdict(baseline: ValidationResult, verdict: Verdict) -> ValidationResult:
    """Apply an advisory verdict on top of the baseline.

    The AI can raise severity and add suggestions; it can never lower the
    severity below the deterministic floor.
    """

    ai_severity = verdict.suggested_severity or Severity.INFO
    severity = max(baseline.severity, ai_severity)
    message = verdict.verdict_text if ai_severity >= baseline.severity else baseline.recommendation_message

    suggestions = list(baseline.suggestions)
    for suggestion in verdict.suggestions:
        if suggestion not in suggestions:
            suggestions.append(suggestion)

    return ValidationResult(
        is_approved=severity == Severity.INFO,
        recommendation_message=message,
        severity=severity,
        suggestions=suggestions,
        used_ai=True,
    )


class EventTimeValidator:
    """Judge proposed event windows; always returns a verdict."""

    def __init__(
        self,
        judge: Optional[Judge] = None,
        config: Optional[ValidatorConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.judge = judge
        self.config = config or ValidatorConfig()
        self.executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="judge")

    def validate(
        self,
        start: datetime,
        end: datetime,
        context: Optional[ValidationContext] = None,
    ) -> ValidationResult:
        baseline = baseline_verdict(start, end, self.config.early_hour)
        if self.judge is None or not self.config.ai_enabled or baseline.severity == Severity.ERROR:
            return baseline

        future = self.executor.submit(self.judge.judge, start, end, describe_context(context))
        try:
            verdict = future.result(timeout=self.config.timeout_seconds)
        except FuturesTimeout:
            future.cancel()
            logger.warning("Judge timed out after %ss; using deterministic verdict", self.config.timeout_seconds)
            return baseline
        except ExternalServiceUnavailable as exc:
            logger.warning("Judge unavailable (%s); using deterministic verdict", exc)
            return baseline
        except Exception:  # noqa: BLE001
            logger.exception("Judge failed unexpectedly; using deterministic verdict")
            return baseline

        result = merge_verdict(baseline, verdict)
        logger.info("Validated %s-%s with AI: severity=%s", start.isoformat(), end.isoformat(), result.severity.name)
        return result

    def close(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)
