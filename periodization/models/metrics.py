"""Derived training-state metrics.

All models are frozen (immutable); they are recomputed from the raw
time series on every evaluation and never persisted except as part of the
evaluation audit snapshot.
"""

from dataclasses import dataclass, field
from datetime import date

from periodization.models.enums import (
    AcwrBand,
    DirectionTrend,
    ExperienceLevel,
    LoadTrend,
    RecommendedIntensity,
    StrainRisk,
    VolumeStatus,
)
from periodization.models.records import VolumeLandmarks


# -----------------------------
# Training load
# -----------------------------
@dataclass(frozen=True)
class LoadSnapshot:
    """Training load state at the end of one day.

    Attributes:
        date: Day the snapshot describes
        ctl: Chronic training load (42-day EWMA)
        atl: Acute training load (7-day EWMA)
        tsb: Training stress balance, always ctl - atl
        acwr: Acute:chronic ratio, None when ctl is 0
        monotony: Mean / population stddev of the trailing 7 daily loads
        strain: Weekly load x monotony
        weekly_load: Sum of the trailing 7 daily loads
    """

    date: date
    ctl: float
    atl: float
    tsb: float
    acwr: float | None
    monotony: float
    strain: float
    weekly_load: float


@dataclass(frozen=True)
class LoadMetrics:
    """Current load snapshot plus classified trends over the window.

    ctl_trend, atl_trend and tsb_window_trend compare the last 7 days with
    the preceding 7; tsb_trend is the least-squares direction of the last
    7 TSB values. All are stable without enough recorded history.
    """

    current: LoadSnapshot
    series: tuple[LoadSnapshot, ...]
    ctl_trend: LoadTrend
    atl_trend: LoadTrend
    acwr_band: AcwrBand
    tsb_trend: DirectionTrend
    strain_risk: StrainRisk
    tsb_window_trend: LoadTrend = LoadTrend.STABLE

    @property
    def has_data(self) -> bool:
        return any(s.ctl > 0 or s.atl > 0 for s in self.series)

    def tsb_by_date(self) -> dict[date, float]:
        """TSB of every day that carries load history."""
        return {s.date: s.tsb for s in self.series if s.ctl > 0 or s.atl > 0}


# -----------------------------
# Readiness
# -----------------------------
@dataclass(frozen=True)
class ReadinessScore:
    """Composite score of one daily assessment."""

    date: date
    score: float
    recommended_intensity: RecommendedIntensity
    adjustment_factor: float
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReadinessSummary:
    """Aggregated readiness over the recent window.

    avg_last_7_days is None when there is no assessment in the last week;
    callers must treat None as "unknown", never as a low score.
    """

    current: float | None
    avg_last_7_days: float | None
    trend: DirectionTrend
    consecutive_declining_days: int
    latest: ReadinessScore | None
    recent_scores: tuple[float, ...] = ()

    @property
    def has_data(self) -> bool:
        return self.latest is not None


@dataclass(frozen=True)
class RecoveryQuality:
    avg_sleep_hours_last_7_days: float | None
    hrv_trend: DirectionTrend
    avg_resting_hr: float | None


# -----------------------------
# Compliance
# -----------------------------
@dataclass(frozen=True)
class ComplianceWindow:
    """Actual vs planned volume of one plan week.

    Percentages are fractions (0.8 == 80%). A week without a target has
    has_target False, percentages 0 and is never low.
    """

    week_start: date
    target_hours: float
    actual_hours: float
    target_tss: float
    actual_tss: float
    hours_percent: float
    tss_percent: float
    has_target: bool
    is_low: bool
    target_id: str | None = None


@dataclass(frozen=True)
class ComplianceSummary:
    current_week: ComplianceWindow | None
    recent_weeks: tuple[ComplianceWindow, ...]
    consecutive_low_weeks: int
    overall_compliance: float | None


# -----------------------------
# Volume and strength
# -----------------------------
@dataclass(frozen=True)
class MuscleVolumeStatus:
    """Classification of a muscle group's weekly set count against its landmarks."""

    muscle_group: str
    current_sets: float
    landmarks: VolumeLandmarks
    status: VolumeStatus
    percent_of_range: float
    recommendation: str


@dataclass(frozen=True)
class TrainingAge:
    years: int
    months: int
    experience_level: ExperienceLevel
    volume_multiplier: float


@dataclass(frozen=True)
class StrengthProgress:
    """Progress of one tracked lift toward its plan target."""

    exercise_id: str
    exercise_name: str
    start_e1rm: float | None
    current_e1rm: float | None
    target_e1rm: float | None
    percent_to_target: float | None
    weeks_without_progress: int
    trend: DirectionTrend


@dataclass(frozen=True)
class StrengthSummary:
    exercises: tuple[StrengthProgress, ...] = field(default_factory=tuple)

    @property
    def exercises_tracked(self) -> int:
        return len(self.exercises)

    @property
    def average_percent_to_target(self) -> float | None:
        values = [e.percent_to_target for e in self.exercises if e.percent_to_target is not None]
        if not values:
            return None
        return sum(values) / len(values)
