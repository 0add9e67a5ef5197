import datetime as dt

import pytest

from periodization.config.settings import LoadSettings
from periodization.metrics.training_load import (
    build_daily_series,
    calculate_acwr,
    calculate_ewma,
    calculate_monotony,
    classify_acwr,
    classify_load_trend,
    compute_load_metrics,
)
from periodization.models.enums import AcwrBand, DirectionTrend, LoadTrend, StrainRisk
from periodization.models.records import DailyTrainingRecord

TODAY = dt.date(2025, 3, 31)


def make_record(
    *,
    days_ago: int,
    actual_tss: float | None = None,
    planned_tss: float | None = None,
    duration_minutes: float = 60,
    rpe: float | None = None,
) -> DailyTrainingRecord:
    return DailyTrainingRecord(
        date=TODAY - dt.timedelta(days=days_ago),
        actual_tss=actual_tss,
        planned_tss=planned_tss,
        duration_minutes=duration_minutes,
        rpe=rpe,
    )


def test_effective_tss_prefers_actual_then_planned():
    assert make_record(days_ago=0, actual_tss=80, planned_tss=50).effective_tss == 80
    assert make_record(days_ago=0, planned_tss=50).effective_tss == 50
    assert make_record(days_ago=0).effective_tss == 0


def test_ewma_seeded_at_zero():
    values = calculate_ewma([70.0, 70.0], 7.0)

    assert values[0] == pytest.approx(10.0)
    assert values[1] == pytest.approx(10.0 + 60.0 / 7.0)


def test_tsb_equals_ctl_minus_atl_for_every_snapshot():
    records = [
        make_record(days_ago=i, actual_tss=float((i * 37) % 150))
        for i in range(0, 60)
        if i % 4 != 0
    ]

    metrics = compute_load_metrics(records, TODAY)

    assert len(metrics.series) == 60
    for snapshot in metrics.series:
        assert snapshot.tsb == snapshot.ctl - snapshot.atl


def test_acwr_is_ratio_and_undefined_without_chronic_load():
    assert calculate_acwr(atl=50.0, ctl=40.0) == pytest.approx(1.25)
    assert calculate_acwr(atl=0.0, ctl=0.0) is None

    metrics = compute_load_metrics([], TODAY)

    assert metrics.current.acwr is None
    assert metrics.acwr_band == AcwrBand.UNDEFINED
    assert metrics.has_data is False
    for snapshot in metrics.series:
        if snapshot.ctl > 0:
            assert snapshot.acwr == pytest.approx(snapshot.atl / snapshot.ctl)


def test_step_increase_rises_monotonically_without_overshoot():
    records = [make_record(days_ago=i, actual_tss=100.0) for i in range(0, 30)]

    metrics = compute_load_metrics(records, TODAY)
    loaded = [s for s in metrics.series if s.date > TODAY - dt.timedelta(days=30)]

    for prev, curr in zip(loaded, loaded[1:]):
        assert curr.ctl > prev.ctl
        assert curr.atl > prev.atl
        assert curr.ctl < 100.0
        assert curr.atl < 100.0


def test_missing_days_are_rest_days():
    records = [make_record(days_ago=2, actual_tss=90.0)]

    daily = build_daily_series(records, TODAY, window_days=5)

    assert [d for d, _ in daily] == [TODAY - dt.timedelta(days=i) for i in range(4, -1, -1)]
    assert [load for _, load in daily] == [0.0, 0.0, 90.0, 0.0, 0.0]


def test_session_rpe_load_replaces_tss():
    records = [make_record(days_ago=0, actual_tss=40.0, duration_minutes=60, rpe=7)]

    daily = build_daily_series(records, TODAY, window_days=1, use_session_rpe=True)

    assert daily == [(TODAY, 420.0)]


def test_monotony_zero_when_loads_identical():
    assert calculate_monotony([60.0] * 7) == 0.0
    assert calculate_monotony([]) == 0.0


def test_monotony_and_strain_on_trailing_week():
    loads = [100.0, 0.0, 100.0, 0.0, 100.0, 0.0, 100.0]
    records = [make_record(days_ago=6 - i, actual_tss=load) for i, load in enumerate(loads)]

    metrics = compute_load_metrics(records, TODAY)

    expected_monotony = calculate_monotony(loads)
    assert metrics.current.weekly_load == 400.0
    assert metrics.current.monotony == pytest.approx(expected_monotony)
    assert metrics.current.strain == pytest.approx(400.0 * expected_monotony)


def test_load_trend_needs_two_full_windows():
    assert classify_load_trend([10.0] * 13) == LoadTrend.STABLE
    assert classify_load_trend([10.0] * 7 + [11.0] * 7) == LoadTrend.RISING
    assert classify_load_trend([10.0] * 7 + [9.0] * 7) == LoadTrend.FALLING
    assert classify_load_trend([10.0] * 7 + [10.4] * 7) == LoadTrend.STABLE


def test_acwr_banding():
    config = LoadSettings()

    assert classify_acwr(1.0, config) == AcwrBand.OPTIMAL
    assert classify_acwr(1.3, config) == AcwrBand.OPTIMAL
    assert classify_acwr(1.4, config) == AcwrBand.CAUTION
    assert classify_acwr(0.6, config) == AcwrBand.CAUTION
    assert classify_acwr(1.6, config) == AcwrBand.HIGH_RISK
    assert classify_acwr(0.4, config) == AcwrBand.HIGH_RISK


def test_heavy_recent_block_lowers_tsb_trend_and_raises_risk():
    records = [make_record(days_ago=i, actual_tss=50.0) for i in range(10, 60)]
    records += [make_record(days_ago=i, actual_tss=250.0 + i) for i in range(0, 10)]

    metrics = compute_load_metrics(records, TODAY)

    assert metrics.current.tsb < 0
    assert metrics.tsb_trend == DirectionTrend.DECLINING
    assert metrics.ctl_trend == LoadTrend.RISING
    assert metrics.strain_risk in (StrainRisk.HIGH, StrainRisk.VERY_HIGH)
    assert metrics.tsb_window_trend == LoadTrend.FALLING


def test_short_history_keeps_window_trends_stable():
    records = [make_record(days_ago=i, actual_tss=60.0) for i in range(0, 5)]

    metrics = compute_load_metrics(records, TODAY)

    assert len(metrics.series) == 60
    assert metrics.ctl_trend == LoadTrend.STABLE
    assert metrics.atl_trend == LoadTrend.STABLE
    assert metrics.tsb_window_trend == LoadTrend.STABLE
    assert metrics.tsb_trend == DirectionTrend.DECLINING


def test_two_recorded_days_keep_tsb_slope_stable():
    records = [make_record(days_ago=i, actual_tss=80.0) for i in (0, 1)]

    metrics = compute_load_metrics(records, TODAY)

    assert metrics.tsb_trend == DirectionTrend.STABLE


def test_tsb_window_trend_rises_as_steady_training_settles():
    records = [make_record(days_ago=i, actual_tss=60.0) for i in range(0, 40)]

    metrics = compute_load_metrics(records, TODAY)

    assert metrics.current.tsb < 0
    assert isinstance(metrics.tsb_window_trend, LoadTrend)
    assert metrics.tsb_window_trend == LoadTrend.RISING
    assert metrics.ctl_trend == LoadTrend.RISING


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ([-10.0] * 7 + [-9.0] * 7, LoadTrend.RISING),
        ([-10.0] * 7 + [-11.0] * 7, LoadTrend.FALLING),
        ([-10.0] * 7 + [-10.3] * 7, LoadTrend.STABLE),
        ([-10.0] * 7 + [-9.7] * 7, LoadTrend.STABLE),
        ([0.0] * 7 + [-2.0] * 7, LoadTrend.FALLING),
        ([0.0] * 7 + [2.0] * 7, LoadTrend.RISING),
    ],
)
def test_window_band_is_relative_to_magnitude(values, expected):
    assert classify_load_trend(values) == expected
