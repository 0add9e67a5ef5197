"""Shared recommendation construction rules.

Evaluators build RecommendationDraft objects with the helpers here so that
confidence, expiry, evidence and ranking follow one contract regardless of
which evaluator produced the draft. Persistence and deduplication live in
store.py.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

from periodization.models.metrics import ComplianceSummary, LoadMetrics, ReadinessSummary, StrengthSummary
from periodization.models.recommendation import RecommendationDraft

BASE_CONFIDENCE = 0.5
END_OF_DAY = time(23, 59, 59, 999999)


def compute_confidence(bonuses: Iterable[float], base: float = BASE_CONFIDENCE) -> float:
    """Weighted confidence rubric.

    Starts at base and adds one bonus per corroborating signal or per
    sufficiently long observation window. The result is always clamped
    to [0, 1], however many bonuses apply.
    """
    score = base + sum(bonuses)
    return round(max(0.0, min(1.0, score)), 2)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, END_OF_DAY, tzinfo=UTC)


def week_end_expiry(week_start: date) -> datetime:
    """Sunday 23:59:59.999999 UTC of the week that starts on week_start."""
    return end_of_day(week_start + timedelta(days=6))


def days_expiry(today: date, days: int) -> datetime:
    """End of the day that is `days` after today."""
    return end_of_day(today + timedelta(days=days))


def round_or_none(value: float | None, digits: int = 1) -> float | None:
    if value is None:
        return None
    return round(value, digits)


def load_evidence(load: LoadMetrics) -> dict[str, Any]:
    current = load.current
    return {
        "ctl": round(current.ctl, 1),
        "atl": round(current.atl, 1),
        "tsb": round(current.tsb, 1),
        "acwr": round_or_none(current.acwr, 2),
        "tsb_trend": load.tsb_trend.value,
        "tsb_window_trend": load.tsb_window_trend.value,
    }


def readiness_evidence(readiness: ReadinessSummary) -> dict[str, Any]:
    return {
        "current": readiness.current,
        "avg_7day": readiness.avg_last_7_days,
        "trend": readiness.trend.value,
        "consecutive_declining_days": readiness.consecutive_declining_days,
    }


def compliance_evidence(compliance: ComplianceSummary) -> dict[str, Any]:
    current = compliance.current_week
    return {
        "hours_percent": current.hours_percent if current else None,
        "tss_percent": current.tss_percent if current else None,
        "consecutive_low_weeks": compliance.consecutive_low_weeks,
        "overall": compliance.overall_compliance,
        "recent_weeks": [round(w.hours_percent, 2) for w in compliance.recent_weeks],
    }


def strength_evidence(strength: StrengthSummary) -> dict[str, Any]:
    return {
        e.exercise_name: {
            "start": e.start_e1rm,
            "current": e.current_e1rm,
            "target": e.target_e1rm,
            "percent_complete": e.percent_to_target,
            "weeks_without_progress": e.weeks_without_progress,
        }
        for e in strength.exercises
    }


def rank_drafts(drafts: list[RecommendationDraft]) -> list[RecommendationDraft]:
    """Most urgent first: priority ascending, then confidence descending."""
    return sorted(drafts, key=lambda d: (d.priority, -d.confidence_score))


def dedup_key(draft: RecommendationDraft) -> tuple[str, str, str]:
    return (draft.plan_id, draft.target_id, draft.kind.value)
