"""Volume landmark classification (MEV / MAV / MRV).

Weekly set counts per muscle group are placed on the landmark scale:

    below_mev        sets < mev
    approaching_mev  mev <= sets < mev + buffer
    in_mav           mev + buffer <= sets <= mav_high
    approaching_mrv  mav_high < sets < mrv
    over_mrv         sets >= mrv

where buffer = approaching_buffer_fraction x (mav_low - mev). Default
landmarks are scaled by a training-age multiplier, so a novice's MRV sits
well below an advanced lifter's.
"""

from __future__ import annotations

from datetime import date

from periodization.config.settings import VolumeSettings
from periodization.models.enums import ExperienceLevel, VolumeStatus
from periodization.models.metrics import MuscleVolumeStatus, TrainingAge
from periodization.models.records import MuscleVolumeInput, VolumeLandmarks

# Weekly working sets, (mev, mav_low, mav_high, mrv)
DEFAULT_VOLUME_LANDMARKS: dict[str, VolumeLandmarks] = {
    "chest": VolumeLandmarks(mev=8, mav_low=12, mav_high=20, mrv=22),
    "back": VolumeLandmarks(mev=8, mav_low=12, mav_high=20, mrv=25),
    "shoulders": VolumeLandmarks(mev=8, mav_low=12, mav_high=20, mrv=22),
    "biceps": VolumeLandmarks(mev=6, mav_low=10, mav_high=16, mrv=20),
    "triceps": VolumeLandmarks(mev=6, mav_low=10, mav_high=16, mrv=20),
    "quads": VolumeLandmarks(mev=8, mav_low=12, mav_high=18, mrv=22),
    "hamstrings": VolumeLandmarks(mev=6, mav_low=10, mav_high=16, mrv=20),
    "glutes": VolumeLandmarks(mev=6, mav_low=10, mav_high=16, mrv=20),
    "calves": VolumeLandmarks(mev=8, mav_low=12, mav_high=16, mrv=20),
    "abs": VolumeLandmarks(mev=6, mav_low=12, mav_high=20, mrv=25),
    "traps": VolumeLandmarks(mev=6, mav_low=10, mav_high=16, mrv=20),
    "forearms": VolumeLandmarks(mev=4, mav_low=8, mav_high=14, mrv=18),
    "lats": VolumeLandmarks(mev=8, mav_low=12, mav_high=20, mrv=25),
    "lower_back": VolumeLandmarks(mev=4, mav_low=8, mav_high=12, mrv=16),
}

FALLBACK_LANDMARKS = VolumeLandmarks(mev=6, mav_low=10, mav_high=16, mrv=20)


def determine_experience_level(training_years: float) -> ExperienceLevel:
    if training_years < 1:
        return ExperienceLevel.NOVICE
    if training_years < 3:
        return ExperienceLevel.INTERMEDIATE
    return ExperienceLevel.ADVANCED


def volume_multiplier(level: ExperienceLevel, config: VolumeSettings | None = None) -> float:
    config = config or VolumeSettings()
    return {
        ExperienceLevel.NOVICE: config.novice_multiplier,
        ExperienceLevel.INTERMEDIATE: config.intermediate_multiplier,
        ExperienceLevel.ADVANCED: config.advanced_multiplier,
    }[level]


def calculate_training_age(start_date: date | None, today: date, config: VolumeSettings | None = None) -> TrainingAge:
    """Training age from the first recorded training date.

    A missing start date is treated as a novice.
    """
    if start_date is None or start_date > today:
        level = ExperienceLevel.NOVICE
        return TrainingAge(years=0, months=0, experience_level=level, volume_multiplier=volume_multiplier(level, config))

    days = (today - start_date).days
    level = determine_experience_level(days / 365)
    return TrainingAge(
        years=days // 365,
        months=(days % 365) // 30,
        experience_level=level,
        volume_multiplier=volume_multiplier(level, config),
    )


def scale_landmarks(landmarks: VolumeLandmarks, multiplier: float) -> VolumeLandmarks:
    """Scale every landmark by the training-age multiplier (rounded to whole sets)."""
    return VolumeLandmarks(
        mev=round(landmarks.mev * multiplier),
        mav_low=round(landmarks.mav_low * multiplier),
        mav_high=round(landmarks.mav_high * multiplier),
        mrv=round(landmarks.mrv * multiplier),
    )


def default_landmarks(muscle_group: str, multiplier: float = 1.0) -> VolumeLandmarks:
    base = DEFAULT_VOLUME_LANDMARKS.get(muscle_group.lower(), FALLBACK_LANDMARKS)
    if multiplier == 1.0:
        return base
    return scale_landmarks(base, multiplier)


def classify_volume(sets: float, landmarks: VolumeLandmarks, config: VolumeSettings | None = None) -> VolumeStatus:
    """Place a weekly set count on the landmark scale (inclusive lower bounds)."""
    config = config or VolumeSettings()
    buffer = config.approaching_buffer_fraction * (landmarks.mav_low - landmarks.mev)

    if sets < landmarks.mev:
        return VolumeStatus.BELOW_MEV
    if sets >= landmarks.mrv:
        return VolumeStatus.OVER_MRV
    if sets < landmarks.mev + buffer:
        return VolumeStatus.APPROACHING_MEV
    if sets <= landmarks.mav_high:
        return VolumeStatus.IN_MAV
    return VolumeStatus.APPROACHING_MRV


def percent_of_range(sets: float, landmarks: VolumeLandmarks) -> float:
    """Position of sets within the MEV to MRV range (0 at MEV, 100 at MRV)."""
    span = landmarks.mrv - landmarks.mev
    if span <= 0:
        return 100.0 if sets >= landmarks.mrv else 0.0
    return round((sets - landmarks.mev) / span * 100, 1)


_RECOMMENDATIONS = {
    VolumeStatus.BELOW_MEV: "Add {delta:g} sets to reach minimum effective volume",
    VolumeStatus.APPROACHING_MEV: "Volume is just above maintenance; add sets to drive adaptation",
    VolumeStatus.IN_MAV: "Volume is in the productive range",
    VolumeStatus.APPROACHING_MRV: "Close to recoverable limit; monitor fatigue",
    VolumeStatus.OVER_MRV: "Over recoverable volume; remove {delta:g} sets or deload",
}


def evaluate_muscle_volume(
    muscle: MuscleVolumeInput,
    multiplier: float = 1.0,
    config: VolumeSettings | None = None,
) -> MuscleVolumeStatus:
    """Classify one muscle group. Custom landmarks are used as-is; defaults are scaled."""
    landmarks = muscle.landmarks or default_landmarks(muscle.muscle_group, multiplier)
    status = classify_volume(muscle.weekly_sets, landmarks, config)

    if status == VolumeStatus.BELOW_MEV:
        delta = landmarks.mev - muscle.weekly_sets
    elif status == VolumeStatus.OVER_MRV:
        delta = muscle.weekly_sets - landmarks.mav_high
    else:
        delta = 0

    return MuscleVolumeStatus(
        muscle_group=muscle.muscle_group,
        current_sets=muscle.weekly_sets,
        landmarks=landmarks,
        status=status,
        percent_of_range=percent_of_range(muscle.weekly_sets, landmarks),
        recommendation=_RECOMMENDATIONS[status].format(delta=delta),
    )


def evaluate_volume(
    muscles: list[MuscleVolumeInput],
    multiplier: float = 1.0,
    config: VolumeSettings | None = None,
) -> list[MuscleVolumeStatus]:
    return [evaluate_muscle_volume(m, multiplier, config) for m in muscles]


def muscles_over_mrv(statuses: list[MuscleVolumeStatus]) -> list[str]:
    return [s.muscle_group for s in statuses if s.status == VolumeStatus.OVER_MRV]
