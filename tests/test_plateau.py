import datetime as dt

from factories import TODAY
from periodization.analysis.plateau import (
    evaluate_exercise,
    percent_to_target,
    plateaued_exercises,
    summarize_strength,
    weeks_without_progress,
)
from periodization.models.enums import DirectionTrend
from periodization.models.records import E1rmPoint, ExerciseProgress


def make_history(*values: float) -> list[E1rmPoint]:
    count = len(values)
    return [
        E1rmPoint(week_start=TODAY - dt.timedelta(weeks=count - 1 - i), best_e1rm=value)
        for i, value in enumerate(values)
    ]


def make_exercise(*values: float, start: float | None = None, target: float | None = 200.0) -> ExerciseProgress:
    return ExerciseProgress(
        exercise_id="squat",
        exercise_name="Back Squat",
        start_e1rm=start,
        target_e1rm=target,
        history=make_history(*values),
    )


def test_progressing_lift_has_no_stalled_weeks():
    assert weeks_without_progress(make_history(100, 105, 110)) == 0


def test_gains_under_one_percent_count_as_stalled():
    assert weeks_without_progress(make_history(100, 105, 110, 110.5, 111)) == 2


def test_history_order_does_not_matter():
    history = make_history(100, 105, 110, 110.5, 111)

    assert weeks_without_progress(list(reversed(history))) == 2


def test_short_history_cannot_plateau():
    assert weeks_without_progress(make_history(100)) == 0
    assert weeks_without_progress([]) == 0


def test_percent_to_target():
    assert percent_to_target(100, 140, 200) == 40.0
    assert percent_to_target(100, 140, 100) == 100.0
    assert percent_to_target(None, 140, 200) is None


def test_start_falls_back_to_earliest_history_point():
    progress = evaluate_exercise(make_exercise(120, 130, 160))

    assert progress.start_e1rm == 120
    assert progress.current_e1rm == 160
    assert progress.percent_to_target == 50.0
    assert progress.trend == DirectionTrend.IMPROVING


def test_stalled_and_dropping_lift_is_declining():
    progress = evaluate_exercise(make_exercise(100, 120, 119, 118, 117, start=100))

    assert progress.weeks_without_progress == 3
    assert progress.trend == DirectionTrend.DECLINING


def test_plateaued_exercises_filters_by_weeks():
    summary = summarize_strength(
        [
            make_exercise(100, 120, 119, 118),
            make_exercise(100, 110, 120),
        ]
    )

    assert summary.exercises_tracked == 2
    assert len(plateaued_exercises(summary, min_weeks=2)) == 1
    assert summary.average_percent_to_target is not None
