"""Builders for derived metrics and a fake collaborator data source."""

import datetime as dt

from periodization.models.enums import AcwrBand, DirectionTrend, LoadTrend, PhaseType, StrainRisk, WeekType
from periodization.models.metrics import (
    ComplianceSummary,
    ComplianceWindow,
    LoadMetrics,
    LoadSnapshot,
    ReadinessSummary,
    StrengthProgress,
    StrengthSummary,
)
from periodization.models.records import (
    DailyTrainingRecord,
    ExerciseProgress,
    MuscleVolumeInput,
    Phase,
    ReadinessAssessment,
    UpcomingEvent,
    WeeklyTarget,
)

# A Monday
TODAY = dt.date(2025, 3, 31)


def make_load(*, tsb: float = 0.0, ctl: float = 50.0, tsb_trend: DirectionTrend = DirectionTrend.STABLE) -> LoadMetrics:
    atl = ctl - tsb
    snapshot = LoadSnapshot(
        date=TODAY,
        ctl=ctl,
        atl=atl,
        tsb=tsb,
        acwr=atl / ctl if ctl else None,
        monotony=1.2,
        strain=300.0,
        weekly_load=atl * 7,
    )
    return LoadMetrics(
        current=snapshot,
        series=(snapshot,),
        ctl_trend=LoadTrend.STABLE,
        atl_trend=LoadTrend.STABLE,
        acwr_band=AcwrBand.OPTIMAL,
        tsb_trend=tsb_trend,
        strain_risk=StrainRisk.LOW,
    )


def make_readiness(
    *,
    avg: float | None = None,
    trend: DirectionTrend = DirectionTrend.STABLE,
    declining_days: int = 0,
    scores: tuple[float, ...] = (),
) -> ReadinessSummary:
    return ReadinessSummary(
        current=scores[-1] if scores else avg,
        avg_last_7_days=avg,
        trend=trend,
        consecutive_declining_days=declining_days,
        latest=None,
        recent_scores=scores,
    )


def make_window(*, weeks_ago: int, percent: float, target_hours: float = 10.0) -> ComplianceWindow:
    return ComplianceWindow(
        week_start=TODAY - dt.timedelta(weeks=weeks_ago),
        target_hours=target_hours,
        actual_hours=target_hours * percent,
        target_tss=500.0,
        actual_tss=500.0 * percent,
        hours_percent=percent,
        tss_percent=percent,
        has_target=target_hours > 0,
        is_low=target_hours > 0 and percent < 0.8,
        target_id=f"week-{weeks_ago}",
    )


def make_compliance(*percents: float) -> ComplianceSummary:
    """Completed weeks, most recent first."""
    recent = tuple(make_window(weeks_ago=i + 1, percent=p) for i, p in enumerate(percents))
    low = 0
    for window in recent:
        if not window.is_low:
            break
        low += 1
    return ComplianceSummary(
        current_week=None,
        recent_weeks=recent,
        consecutive_low_weeks=low,
        overall_compliance=sum(percents) / len(percents) if percents else None,
    )


def make_target(
    *,
    target_id: str = "week-current",
    week_start: dt.date = TODAY,
    hours: float = 10.0,
    tss: float = 500.0,
    week_type: WeekType = WeekType.NORMAL,
) -> WeeklyTarget:
    return WeeklyTarget(
        id=target_id,
        phase_id="phase-build",
        week_start=week_start,
        week_type=week_type,
        target_hours=hours,
        target_tss=tss,
    )


def make_phase(
    *,
    phase_id: str = "phase-build",
    start_offset: int = -20,
    end_offset: int = 30,
    phase_type: PhaseType = PhaseType.BUILD,
    order_index: int = 0,
) -> Phase:
    return Phase(
        id=phase_id,
        plan_id="plan-1",
        name=phase_id.removeprefix("phase-").title(),
        type=phase_type,
        order_index=order_index,
        start_date=TODAY + dt.timedelta(days=start_offset),
        end_date=TODAY + dt.timedelta(days=end_offset),
    )


def make_strength(*percents: float, stalled_weeks: int = 0) -> StrengthSummary:
    return StrengthSummary(
        exercises=tuple(
            StrengthProgress(
                exercise_id=f"ex-{i}",
                exercise_name=f"Lift {i}",
                start_e1rm=100.0,
                current_e1rm=100.0 + p,
                target_e1rm=200.0,
                percent_to_target=p,
                weeks_without_progress=stalled_weeks,
                trend=DirectionTrend.STABLE if stalled_weeks else DirectionTrend.IMPROVING,
            )
            for i, p in enumerate(percents)
        )
    )


class FakeDataSource:
    """In-memory collaborator; set `fail_on` to make one read raise."""

    def __init__(
        self,
        *,
        training: list[DailyTrainingRecord] | None = None,
        readiness: list[ReadinessAssessment] | None = None,
        targets: list[WeeklyTarget] | None = None,
        phases: list[Phase] | None = None,
        volume: list[MuscleVolumeInput] | None = None,
        strength: list[ExerciseProgress] | None = None,
        training_start_date: dt.date | None = None,
        events: list[UpcomingEvent] | None = None,
        fail_on: str | None = None,
    ):
        self.training = training or []
        self.readiness = readiness or []
        self.targets = targets or []
        self.phases = phases or []
        self.volume = volume or []
        self.strength = strength or []
        self.training_start_date = training_start_date
        self.events = events or []
        self.fail_on = fail_on

    def _check(self, name: str) -> None:
        if self.fail_on == name:
            raise ConnectionError(f"{name} backend unavailable")

    def get_daily_training(self, user_id, start, end):
        self._check("training")
        return [r for r in self.training if start <= r.date <= end]

    def get_readiness(self, user_id, start, end):
        self._check("readiness")
        return [a for a in self.readiness if start <= a.date <= end]

    def get_weekly_targets(self, plan_id):
        self._check("weekly_targets")
        return list(self.targets)

    def get_phases(self, plan_id):
        self._check("phases")
        return list(self.phases)

    def get_muscle_volume(self, user_id, week_start):
        self._check("muscle_volume")
        return list(self.volume)

    def get_strength_progress(self, user_id, plan_id):
        self._check("strength")
        return list(self.strength)

    def get_training_start_date(self, user_id):
        self._check("training_start_date")
        return self.training_start_date

    def get_upcoming_events(self, plan_id, start, end):
        self._check("upcoming_events")
        return [e for e in self.events if start <= e.event_date <= end]
