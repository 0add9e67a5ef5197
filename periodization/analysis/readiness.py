"""Readiness scoring and summarization.

Each daily assessment is reduced to a composite 0-100 score. Inputs that
were not recorded are left out of the weighted average instead of being
counted as zero; an assessment with no usable input scores a neutral 50.
"""

from __future__ import annotations

import statistics
from datetime import date, timedelta

from periodization.analysis.trends import relative_change_trend
from periodization.config.settings import ReadinessSettings
from periodization.models.enums import DirectionTrend, RecommendedIntensity
from periodization.models.metrics import ReadinessScore, ReadinessSummary, RecoveryQuality
from periodization.models.records import ReadinessAssessment, ReadinessBaseline

NEUTRAL_SCORE = 50.0


def _hrv_score(hrv: float, baseline: ReadinessBaseline | None) -> float:
    """Score HRV against the rolling baseline.

    With a standard deviation the z-score is mapped piecewise onto 0-100;
    with only an average the plain ratio is used (100% of baseline == 70).
    Without a baseline the reading is neutral.
    """
    if baseline is None or not baseline.avg_hrv:
        return NEUTRAL_SCORE

    if baseline.std_hrv and baseline.std_hrv > 0:
        z = (hrv - baseline.avg_hrv) / baseline.std_hrv
        if z >= 1:
            return 80 + min(z - 1, 2) * 10
        if z >= 0:
            return 60 + z * 20
        if z >= -1:
            return 40 + (z + 1) * 20
        return max(0.0, 40 + z * 20)

    ratio = hrv / baseline.avg_hrv
    return max(0.0, min(100.0, 70 + (ratio - 1) * 200))


def _sleep_score(
    sleep_hours: float | None,
    sleep_quality: int | None,
    target_hours: float,
) -> float | None:
    """Blend sleep duration vs target with reported quality; None without either."""
    parts: list[float] = []
    if sleep_hours is not None and target_hours > 0:
        parts.append(min(100.0, sleep_hours / target_hours * 100))
    if sleep_quality is not None:
        parts.append(sleep_quality / 10 * 100)
    if not parts:
        return None
    return sum(parts) / len(parts)


def _tsb_score(tsb: float) -> float:
    if tsb > 15:
        return 80.0
    if tsb >= 0:
        return 90 + tsb * 0.67
    if tsb >= -10:
        return 70 + tsb * 2
    if tsb >= -20:
        return 30 + (tsb + 20) * 4
    return max(0.0, 30 + (tsb + 20) * 2)


def recommend_intensity(score: float, config: ReadinessSettings) -> tuple[RecommendedIntensity, float]:
    """Map a score to an intensity recommendation and a load adjustment factor.

    Factor ranges from 0.70 (score 0) to 1.0 in the maintain band and up to
    1.10 at a score of 100.
    """
    if score > config.push_above:
        factor = 1.0 + (score - config.push_above) / 300
        return RecommendedIntensity.PUSH, round(min(factor, 1.10), 2)
    if score >= config.reduce_below:
        return RecommendedIntensity.MAINTAIN, 1.0
    factor = 0.70 + (score / config.reduce_below) * 0.30
    return RecommendedIntensity.REDUCE, round(factor, 2)


def score_assessment(
    assessment: ReadinessAssessment,
    baseline: ReadinessBaseline | None = None,
    config: ReadinessSettings | None = None,
) -> ReadinessScore:
    """Compute the composite readiness score of one assessment.

    Weights (defaults): subjective 35, HRV 20, sleep 20, soreness 15, TSB 10.
    """
    config = config or ReadinessSettings()
    weighted: list[tuple[float, float]] = []
    suggestions: list[str] = []

    weighted.append((assessment.subjective_readiness / 10 * 100, config.subjective_weight))
    if assessment.subjective_readiness <= 4:
        suggestions.append("Consider a lighter session or active recovery")

    if assessment.hrv_reading is not None:
        hrv = _hrv_score(assessment.hrv_reading, baseline)
        weighted.append((hrv, config.hrv_weight))
        if hrv < 40:
            suggestions.append("HRV is well below baseline - prioritize recovery")

    sleep = _sleep_score(assessment.sleep_hours, assessment.sleep_quality, config.sleep_target_hours)
    if sleep is not None:
        weighted.append((sleep, config.sleep_weight))
        if assessment.sleep_hours is not None and assessment.sleep_hours < 6:
            suggestions.append("Sleep was inadequate - consider reducing intensity")

    if assessment.soreness is not None:
        weighted.append(((10 - assessment.soreness) / 9 * 100, config.soreness_weight))
        if assessment.soreness >= 8:
            suggestions.append("High soreness - favor mobility and low-impact work")

    if assessment.tsb is not None:
        weighted.append((_tsb_score(assessment.tsb), config.tsb_weight))
        if assessment.tsb < -15:
            suggestions.append("Training stress is high - deload may be needed")

    total_weight = sum(w for _, w in weighted)
    score = sum(v * w for v, w in weighted) / total_weight if total_weight > 0 else NEUTRAL_SCORE
    score = round(max(0.0, min(100.0, score)), 1)

    intensity, factor = recommend_intensity(score, config)
    if not suggestions:
        if intensity == RecommendedIntensity.PUSH:
            suggestions.append("Good readiness - train as planned or push slightly")
        elif intensity == RecommendedIntensity.MAINTAIN:
            suggestions.append("Moderate readiness - stick to planned workout")
        else:
            suggestions.append("Low readiness - reduce load today")

    return ReadinessScore(
        date=assessment.date,
        score=score,
        recommended_intensity=intensity,
        adjustment_factor=factor,
        suggestions=tuple(suggestions),
    )


def latest_per_day(assessments: list[ReadinessAssessment]) -> list[ReadinessAssessment]:
    """One assessment per day (the later entry for a date wins), oldest first."""
    by_day: dict[date, ReadinessAssessment] = {}
    for assessment in assessments:
        by_day[assessment.date] = assessment
    return [by_day[d] for d in sorted(by_day)]


def count_declining_days(scores: list[float]) -> int:
    """Length of the strictly decreasing run ending at the latest score.

    The count is the number of day-over-day drops, so [80, 70, 60] is 2.
    """
    count = 0
    for i in range(len(scores) - 1, 0, -1):
        if scores[i] < scores[i - 1]:
            count += 1
        else:
            break
    return count


def classify_readiness_trend(scores: list[float], avg_7_day: float | None, config: ReadinessSettings) -> DirectionTrend:
    """Declining on a run of drops, improving when today beats the weekly average."""
    if len(scores) < 3:
        return DirectionTrend.STABLE
    if count_declining_days(scores) >= config.declining_min_days:
        return DirectionTrend.DECLINING
    if avg_7_day is not None and scores[-1] > avg_7_day + config.improving_margin:
        return DirectionTrend.IMPROVING
    return DirectionTrend.STABLE


def summarize_readiness(
    assessments: list[ReadinessAssessment],
    today: date,
    baseline: ReadinessBaseline | None = None,
    config: ReadinessSettings | None = None,
    daily_tsb: dict[date, float] | None = None,
) -> ReadinessSummary:
    """Summarize recent readiness.

    Args:
        assessments: Assessments in any order; only those on or before today count
        today: Evaluation date
        baseline: Physiological baselines for ratio inputs
        config: Readiness weights and thresholds
        daily_tsb: Load-model TSB per day, scored for assessments that carry no tsb

    Returns:
        ReadinessSummary; with no assessments current and avg_last_7_days are
        None and the trend is stable.
    """
    config = config or ReadinessSettings()
    daily = [a for a in latest_per_day(assessments) if a.date <= today]
    if daily_tsb:
        daily = [
            a.model_copy(update={"tsb": daily_tsb[a.date]}) if a.tsb is None and a.date in daily_tsb else a
            for a in daily
        ]
    if not daily:
        return ReadinessSummary(
            current=None,
            avg_last_7_days=None,
            trend=DirectionTrend.STABLE,
            consecutive_declining_days=0,
            latest=None,
        )

    scored = [score_assessment(a, baseline, config) for a in daily]
    scores = [s.score for s in scored]

    week_start = today - timedelta(days=6)
    last_week = [s.score for s in scored if s.date >= week_start]
    avg_7_day = round(statistics.fmean(last_week), 1) if last_week else None

    latest = scored[-1]
    return ReadinessSummary(
        current=latest.score if latest.date >= week_start else None,
        avg_last_7_days=avg_7_day,
        trend=classify_readiness_trend(scores, avg_7_day, config),
        consecutive_declining_days=count_declining_days(scores),
        latest=latest,
        recent_scores=tuple(last_week),
    )


def compute_baseline(
    assessments: list[ReadinessAssessment],
    today: date,
    config: ReadinessSettings | None = None,
) -> ReadinessBaseline:
    """Rolling averages of HRV, resting HR and sleep over the baseline window."""
    config = config or ReadinessSettings()
    start = today - timedelta(days=config.baseline_window_days)
    window = [a for a in latest_per_day(assessments) if start <= a.date < today]

    hrv = [a.hrv_reading for a in window if a.hrv_reading is not None]
    resting = [float(a.resting_hr) for a in window if a.resting_hr is not None]
    sleep = [a.sleep_hours for a in window if a.sleep_hours is not None]

    return ReadinessBaseline(
        avg_hrv=statistics.fmean(hrv) if hrv else None,
        std_hrv=statistics.stdev(hrv) if len(hrv) >= 2 else None,
        avg_resting_hr=statistics.fmean(resting) if resting else None,
        avg_sleep_hours=statistics.fmean(sleep) if sleep else None,
        hrv_sample_count=len(hrv),
    )


def summarize_recovery_quality(assessments: list[ReadinessAssessment], today: date) -> RecoveryQuality:
    """Average sleep and resting HR over the last 7 days plus the HRV trend."""
    start = today - timedelta(days=7)
    recent = [a for a in latest_per_day(assessments) if start <= a.date <= today]

    sleep = [a.sleep_hours for a in recent if a.sleep_hours is not None]
    resting = [float(a.resting_hr) for a in recent if a.resting_hr is not None]
    hrv = [a.hrv_reading for a in recent if a.hrv_reading is not None]

    hrv_trend = DirectionTrend.STABLE
    if len(hrv) >= 3:
        hrv_trend = relative_change_trend(hrv[-3:], hrv[:3])

    return RecoveryQuality(
        avg_sleep_hours_last_7_days=round(statistics.fmean(sleep), 1) if sleep else None,
        hrv_trend=hrv_trend,
        avg_resting_hr=round(statistics.fmean(resting)) if resting else None,
    )
