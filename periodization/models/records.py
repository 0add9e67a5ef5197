"""Normalized time-series records consumed from collaborator services.

These are the read-only inputs of an evaluation. Collaborators (workout log,
readiness check-ins, plan authoring, strength tracking) convert their own
storage into these shapes; the engine never reads their tables directly.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from periodization.models.enums import PhaseType, WeekType


class DailyTrainingRecord(BaseModel):
    """One day of training. Immutable once the day is in the past."""

    model_config = ConfigDict(frozen=True)

    date: date
    actual_tss: float | None = Field(default=None, ge=0)
    planned_tss: float | None = Field(default=None, ge=0)
    duration_minutes: float = Field(default=0.0, ge=0)
    rpe: float | None = Field(default=None, ge=0, le=10)

    @property
    def effective_tss(self) -> float:
        """Actual TSS if recorded, else planned, else 0."""
        if self.actual_tss is not None:
            return self.actual_tss
        if self.planned_tss is not None:
            return self.planned_tss
        return 0.0

    @property
    def session_rpe_load(self) -> float:
        """Foster session load (RPE x minutes); falls back to TSS without an RPE."""
        if self.rpe is None:
            return self.effective_tss
        return self.rpe * self.duration_minutes


class ReadinessAssessment(BaseModel):
    """Daily readiness check-in (one per user per day)."""

    model_config = ConfigDict(frozen=True)

    date: date
    subjective_readiness: int = Field(..., ge=1, le=10)
    sleep_quality: int | None = Field(default=None, ge=1, le=10)
    sleep_hours: float | None = Field(default=None, ge=0, le=24)
    hrv_reading: float | None = Field(default=None, gt=0)
    resting_hr: int | None = Field(default=None, gt=0)
    soreness: int | None = Field(default=None, ge=1, le=10)
    tsb: float | None = None


class ReadinessBaseline(BaseModel):
    """Rolling physiological baselines used as ratio references."""

    avg_hrv: float | None = None
    std_hrv: float | None = None
    avg_resting_hr: float | None = None
    avg_sleep_hours: float | None = None
    hrv_sample_count: int = 0


class WeeklyTarget(BaseModel):
    """Planned volume for one plan week."""

    model_config = ConfigDict(frozen=True)

    id: str
    phase_id: str | None = None
    week_number: int = 0
    week_start: date
    week_type: WeekType = WeekType.NORMAL
    target_hours: float = Field(default=0.0, ge=0)
    target_tss: float = Field(default=0.0, ge=0)


class AdaptationEntry(BaseModel):
    """One applied adjustment recorded on a phase."""

    date: date
    type: str
    original_end_date: date | None = None
    new_end_date: date | None = None
    recommendation_id: str | None = None


class Phase(BaseModel):
    """A periodization block of a plan."""

    id: str
    plan_id: str | None = None
    name: str = ""
    type: PhaseType = PhaseType.BUILD
    order_index: int = 0
    start_date: date
    end_date: date
    original_end_date: date | None = None
    adaptation_history: list[AdaptationEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self) -> Phase:
        if self.end_date < self.start_date:
            raise ValueError(f"Phase {self.id} ends ({self.end_date}) before it starts ({self.start_date})")
        return self


class VolumeLandmarks(BaseModel):
    """Weekly set-count landmarks for one muscle group."""

    model_config = ConfigDict(frozen=True)

    mev: float = Field(..., ge=0)
    mav_low: float = Field(..., ge=0)
    mav_high: float = Field(..., ge=0)
    mrv: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> VolumeLandmarks:
        if not (self.mev <= self.mav_low <= self.mav_high <= self.mrv):
            raise ValueError(
                f"Volume landmarks must satisfy mev <= mav_low <= mav_high <= mrv, "
                f"got {self.mev}/{self.mav_low}/{self.mav_high}/{self.mrv}"
            )
        return self


class MuscleVolumeInput(BaseModel):
    """Current weekly set count for one muscle group with optional custom landmarks."""

    muscle_group: str
    weekly_sets: float = Field(..., ge=0)
    landmarks: VolumeLandmarks | None = None


class E1rmPoint(BaseModel):
    """Best estimated one-rep max observed in a training week."""

    week_start: date
    best_e1rm: float = Field(..., gt=0)


class ExerciseProgress(BaseModel):
    """Estimated 1RM history of one lift plus its plan target."""

    exercise_id: str
    exercise_name: str
    start_e1rm: float | None = None
    target_e1rm: float | None = None
    history: list[E1rmPoint] = Field(default_factory=list)

    @property
    def current_e1rm(self) -> float | None:
        if not self.history:
            return None
        return max(self.history, key=lambda p: p.week_start).best_e1rm


class UpcomingEvent(BaseModel):
    """A race or test event attached to the plan."""

    id: str
    name: str
    event_date: date
    priority: str = "B"
    event_type: str = "race"
