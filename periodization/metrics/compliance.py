"""Plan compliance computation.

Compare weekly targets against the completed training of each week.
Returns reconciliation metrics only; no recommendations, no mutations.
"""

from __future__ import annotations

from datetime import date, timedelta

from periodization.config.settings import EvaluatorSettings
from periodization.models.metrics import ComplianceSummary, ComplianceWindow
from periodization.models.records import DailyTrainingRecord, WeeklyTarget

RECENT_WEEKS = 4


def covers(target: WeeklyTarget, day: date) -> bool:
    """True if day falls inside the 7-day week of target."""
    return target.week_start <= day <= target.week_start + timedelta(days=6)


def _percent(actual: float, target: float) -> float:
    if target <= 0:
        return 0.0
    return actual / target


def compute_week_window(
    target: WeeklyTarget,
    records: list[DailyTrainingRecord],
    low_threshold: float = 0.8,
) -> ComplianceWindow:
    """Reconcile one weekly target with the records that fall in its week.

    Args:
        target: Weekly target (hours and TSS)
        records: Daily records; only those inside the target week are used
        low_threshold: Hours percent below which the week is low

    Returns:
        ComplianceWindow. A target of 0 hours yields has_target False and a
        percent of 0, never low.
    """
    week_end = target.week_start + timedelta(days=6)
    in_week = [r for r in records if target.week_start <= r.date <= week_end]

    actual_hours = sum(r.duration_minutes for r in in_week) / 60
    actual_tss = sum(r.actual_tss or 0.0 for r in in_week)
    has_target = target.target_hours > 0
    hours_percent = _percent(actual_hours, target.target_hours)

    return ComplianceWindow(
        week_start=target.week_start,
        target_hours=target.target_hours,
        actual_hours=round(actual_hours, 2),
        target_tss=target.target_tss,
        actual_tss=actual_tss,
        hours_percent=round(hours_percent, 4),
        tss_percent=round(_percent(actual_tss, target.target_tss), 4),
        has_target=has_target,
        is_low=has_target and hours_percent < low_threshold,
        target_id=target.id,
    )


def count_consecutive_low_weeks(completed_weeks: list[ComplianceWindow]) -> int:
    """Count low weeks scanning backward from the most recent completed week.

    The scan stops at the first week that is not low; a week without a
    target is never low, so it also ends the streak.
    """
    count = 0
    for window in sorted(completed_weeks, key=lambda w: w.week_start, reverse=True):
        if not window.is_low:
            break
        count += 1
    return count


def compute_compliance(
    targets: list[WeeklyTarget],
    records: list[DailyTrainingRecord],
    today: date,
    config: EvaluatorSettings | None = None,
) -> ComplianceSummary:
    """Summarize weekly compliance as of today.

    The week containing today is reported as current_week but is still in
    progress, so it never counts toward the low-week streak. recent_weeks
    holds up to the last 4 completed weeks, most recent first.
    """
    config = config or EvaluatorSettings()
    current_target = next((t for t in targets if covers(t, today)), None)
    current_week = (
        compute_week_window(current_target, records, config.low_compliance) if current_target is not None else None
    )

    completed = sorted(
        (t for t in targets if t.week_start + timedelta(days=6) < today),
        key=lambda t: t.week_start,
        reverse=True,
    )[:RECENT_WEEKS]
    recent = [compute_week_window(t, records, config.low_compliance) for t in completed]

    with_target = [w.hours_percent for w in recent if w.has_target]
    overall = round(sum(with_target) / len(with_target), 4) if with_target else None

    return ComplianceSummary(
        current_week=current_week,
        recent_weeks=tuple(recent),
        consecutive_low_weeks=count_consecutive_low_weeks(recent),
        overall_compliance=overall,
    )
