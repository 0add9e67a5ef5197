"""Strength progress and plateau detection.

A lift is considered stalled in a week when its best estimated 1RM does not
beat the best of the preceding ``window_weeks`` weeks by more than
``min_improvement_pct`` percent. weeks_without_progress is the length of
the stalled run ending at the most recent week.
"""

from __future__ import annotations

from periodization.config.settings import DeloadSettings
from periodization.models.enums import DirectionTrend
from periodization.models.metrics import StrengthProgress, StrengthSummary
from periodization.models.records import E1rmPoint, ExerciseProgress


def weeks_without_progress(history: list[E1rmPoint], window_weeks: int = 3, min_improvement_pct: float = 1.0) -> int:
    """Count trailing weeks whose best e1RM failed to beat the recent best.

    Args:
        history: Weekly best e1RM points in any order
        window_weeks: Number of prior weeks that define the reference best
        min_improvement_pct: Required gain over the reference, in percent

    Returns:
        Number of consecutive stalled weeks ending at the latest week. With
        fewer than 2 weeks of history the lift cannot be judged and 0 is
        returned.
    """
    points = sorted(history, key=lambda p: p.week_start)
    if len(points) < 2:
        return 0

    stalled = 0
    for i in range(len(points) - 1, 0, -1):
        reference = max(p.best_e1rm for p in points[max(0, i - window_weeks) : i])
        required = reference * (1 + min_improvement_pct / 100)
        if points[i].best_e1rm > required:
            break
        stalled += 1
    return stalled


def percent_to_target(start: float | None, current: float | None, target: float | None) -> float | None:
    """Progress from start toward target in percent; 100 when target <= start."""
    if start is None or current is None or target is None:
        return None
    total_gain = target - start
    if total_gain <= 0:
        return 100.0
    return round((current - start) / total_gain * 100, 1)


def _trend(history: list[E1rmPoint], stalled: int, plateau_weeks: int) -> DirectionTrend:
    points = sorted(history, key=lambda p: p.week_start)
    if len(points) >= 2 and points[-1].best_e1rm < points[-2].best_e1rm and stalled >= plateau_weeks:
        return DirectionTrend.DECLINING
    if stalled >= plateau_weeks:
        return DirectionTrend.STABLE
    return DirectionTrend.IMPROVING


def evaluate_exercise(exercise: ExerciseProgress, config: DeloadSettings | None = None) -> StrengthProgress:
    config = config or DeloadSettings()
    stalled = weeks_without_progress(exercise.history, config.plateau_window_weeks, config.plateau_min_improvement_pct)
    current = exercise.current_e1rm
    start = exercise.start_e1rm
    if start is None and exercise.history:
        start = min(exercise.history, key=lambda p: p.week_start).best_e1rm

    return StrengthProgress(
        exercise_id=exercise.exercise_id,
        exercise_name=exercise.exercise_name,
        start_e1rm=start,
        current_e1rm=current,
        target_e1rm=exercise.target_e1rm,
        percent_to_target=percent_to_target(start, current, exercise.target_e1rm),
        weeks_without_progress=stalled,
        trend=_trend(exercise.history, stalled, config.plateau_weeks),
    )


def summarize_strength(exercises: list[ExerciseProgress], config: DeloadSettings | None = None) -> StrengthSummary:
    return StrengthSummary(exercises=tuple(evaluate_exercise(e, config) for e in exercises))


def plateaued_exercises(summary: StrengthSummary, min_weeks: int) -> list[StrengthProgress]:
    return [e for e in summary.exercises if e.weeks_without_progress >= min_weeks]
