import datetime as dt

import pytest

from periodization.analysis.readiness import (
    compute_baseline,
    count_declining_days,
    score_assessment,
    summarize_readiness,
    summarize_recovery_quality,
)
from periodization.models.enums import DirectionTrend, RecommendedIntensity
from periodization.models.records import ReadinessAssessment, ReadinessBaseline

TODAY = dt.date(2025, 3, 31)


def make_assessment(*, days_ago: int = 0, subjective: int = 7, **kwargs) -> ReadinessAssessment:
    return ReadinessAssessment(
        date=TODAY - dt.timedelta(days=days_ago),
        subjective_readiness=subjective,
        **kwargs,
    )


def test_missing_inputs_are_omitted_not_penalized():
    only_subjective = score_assessment(make_assessment(subjective=8))

    assert only_subjective.score == 80.0
    assert only_subjective.recommended_intensity == RecommendedIntensity.PUSH


def test_all_inputs_blend_with_weights():
    baseline = ReadinessBaseline(avg_hrv=60.0)
    assessment = make_assessment(
        subjective=6,
        hrv_reading=60.0,
        sleep_hours=8.0,
        sleep_quality=8,
        soreness=1,
    )

    result = score_assessment(assessment, baseline)

    # subjective 60*35, hrv 70*20, sleep 90*20, soreness 100*15 over weight 90
    expected = round((60 * 35 + 70 * 20 + 90 * 20 + 100 * 15) / 90, 1)
    assert result.score == expected


def test_hrv_without_baseline_is_neutral():
    result = score_assessment(make_assessment(subjective=5, hrv_reading=40.0))

    assert result.score == pytest.approx((50 * 35 + 50 * 20) / 55, abs=0.05)


def test_intensity_thresholds():
    reduce = score_assessment(make_assessment(subjective=3))
    maintain = score_assessment(make_assessment(subjective=7))
    push = score_assessment(make_assessment(subjective=10))

    assert reduce.recommended_intensity == RecommendedIntensity.REDUCE
    assert reduce.adjustment_factor < 1.0
    assert maintain.recommended_intensity == RecommendedIntensity.MAINTAIN
    assert maintain.adjustment_factor == 1.0
    assert push.recommended_intensity == RecommendedIntensity.PUSH
    assert push.adjustment_factor == 1.1


def test_count_declining_days():
    assert count_declining_days([80, 70, 60]) == 2
    assert count_declining_days([60, 70, 65, 60, 50]) == 3
    assert count_declining_days([50, 60]) == 0
    assert count_declining_days([]) == 0


def test_declining_trend_after_run_of_drops():
    assessments = [make_assessment(days_ago=6 - i, subjective=s) for i, s in enumerate([9, 9, 8, 7, 6, 5, 4])]

    summary = summarize_readiness(assessments, TODAY)

    assert summary.trend == DirectionTrend.DECLINING
    assert summary.consecutive_declining_days == 5
    assert summary.current == 40.0
    assert summary.avg_last_7_days == pytest.approx(68.6)


def test_improving_when_today_beats_weekly_average():
    assessments = [make_assessment(days_ago=3 - i, subjective=s) for i, s in enumerate([5, 5, 5, 9])]

    summary = summarize_readiness(assessments, TODAY)

    assert summary.trend == DirectionTrend.IMPROVING


def test_fewer_than_three_scores_is_stable():
    assessments = [make_assessment(days_ago=1, subjective=9), make_assessment(days_ago=0, subjective=2)]

    summary = summarize_readiness(assessments, TODAY)

    assert summary.trend == DirectionTrend.STABLE


def test_no_assessments_yields_unknown_summary():
    summary = summarize_readiness([], TODAY)

    assert summary.current is None
    assert summary.avg_last_7_days is None
    assert summary.trend == DirectionTrend.STABLE
    assert summary.has_data is False


def test_later_assessment_for_same_day_wins():
    assessments = [make_assessment(days_ago=0, subjective=3), make_assessment(days_ago=0, subjective=9)]

    summary = summarize_readiness(assessments, TODAY)

    assert summary.current == 90.0
    assert len(summary.recent_scores) == 1


def test_baseline_and_recovery_quality():
    assessments = [
        make_assessment(days_ago=i, hrv_reading=50.0 + i, resting_hr=52, sleep_hours=7.0)
        for i in range(1, 11)
    ]

    baseline = compute_baseline(assessments, TODAY)
    recovery = summarize_recovery_quality(assessments, TODAY)

    assert baseline.hrv_sample_count == 10
    assert baseline.avg_hrv == pytest.approx(55.5)
    assert baseline.std_hrv is not None
    assert baseline.avg_resting_hr == 52.0
    assert recovery.avg_sleep_hours_last_7_days == 7.0
    # HRV falls over time (older days were higher)
    assert recovery.hrv_trend == DirectionTrend.DECLINING


def test_load_model_tsb_fills_assessments_without_tsb():
    assessments = [make_assessment(subjective=8), make_assessment(days_ago=1, subjective=8)]

    summary = summarize_readiness(assessments, TODAY, daily_tsb={TODAY: -25.0})

    # (80 * 35 + 20 * 10) / 45
    assert summary.latest.score == 66.7
    assert "Training stress is high - deload may be needed" in summary.latest.suggestions
    assert summary.recent_scores == (80.0, 66.7)


def test_reported_tsb_is_not_overridden():
    summary = summarize_readiness([make_assessment(subjective=8, tsb=-25.0)], TODAY, daily_tsb={TODAY: 10.0})

    assert summary.latest.score == 66.7
