import datetime as dt

import pytest

from periodization.analysis.volume_landmarks import (
    calculate_training_age,
    classify_volume,
    default_landmarks,
    evaluate_muscle_volume,
    evaluate_volume,
    muscles_over_mrv,
    percent_of_range,
)
from periodization.models.enums import ExperienceLevel, VolumeStatus
from periodization.models.records import MuscleVolumeInput, VolumeLandmarks

LANDMARKS = VolumeLandmarks(mev=10, mav_low=20, mav_high=30, mrv=40)


@pytest.mark.parametrize(
    ("sets", "expected"),
    [
        (9, VolumeStatus.BELOW_MEV),
        (10, VolumeStatus.APPROACHING_MEV),
        (10.5, VolumeStatus.APPROACHING_MEV),
        (11, VolumeStatus.IN_MAV),
        (20, VolumeStatus.IN_MAV),
        (30, VolumeStatus.IN_MAV),
        (31, VolumeStatus.APPROACHING_MRV),
        (39.9, VolumeStatus.APPROACHING_MRV),
        (40, VolumeStatus.OVER_MRV),
        (45, VolumeStatus.OVER_MRV),
    ],
)
def test_classify_volume_boundaries(sets, expected):
    assert classify_volume(sets, LANDMARKS) == expected


def test_exact_landmarks_belong_to_lower_severity_band():
    assert classify_volume(LANDMARKS.mev, LANDMARKS) != VolumeStatus.BELOW_MEV
    assert classify_volume(LANDMARKS.mav_high, LANDMARKS) == VolumeStatus.IN_MAV
    assert classify_volume(LANDMARKS.mrv, LANDMARKS) == VolumeStatus.OVER_MRV


def test_landmarks_must_be_ordered():
    with pytest.raises(ValueError):
        VolumeLandmarks(mev=12, mav_low=10, mav_high=16, mrv=20)


def test_percent_of_range():
    assert percent_of_range(10, LANDMARKS) == 0.0
    assert percent_of_range(25, LANDMARKS) == 50.0
    assert percent_of_range(40, LANDMARKS) == 100.0


def test_training_age_levels():
    today = dt.date(2025, 3, 31)

    assert calculate_training_age(None, today).experience_level == ExperienceLevel.NOVICE
    intermediate = calculate_training_age(today - dt.timedelta(days=400), today)
    assert intermediate.experience_level == ExperienceLevel.INTERMEDIATE
    assert intermediate.years == 1
    assert intermediate.volume_multiplier == 0.85
    advanced = calculate_training_age(today - dt.timedelta(days=365 * 5), today)
    assert advanced.experience_level == ExperienceLevel.ADVANCED
    assert advanced.volume_multiplier == 1.0


def test_default_landmarks_scale_with_training_age():
    novice = default_landmarks("chest", 0.7)
    advanced = default_landmarks("chest", 1.0)

    assert novice.mrv < advanced.mrv
    assert novice == VolumeLandmarks(mev=6, mav_low=8, mav_high=14, mrv=15)
    assert default_landmarks("unknown_muscle").mrv == 20


def test_custom_landmarks_are_used_as_is():
    muscle = MuscleVolumeInput(muscle_group="chest", weekly_sets=10, landmarks=LANDMARKS)

    status = evaluate_muscle_volume(muscle, multiplier=0.7)

    assert status.landmarks == LANDMARKS
    assert status.status == VolumeStatus.APPROACHING_MEV


def test_muscles_over_mrv():
    statuses = evaluate_volume(
        [
            MuscleVolumeInput(muscle_group="chest", weekly_sets=24),
            MuscleVolumeInput(muscle_group="back", weekly_sets=25),
            MuscleVolumeInput(muscle_group="quads", weekly_sets=12),
        ]
    )

    assert muscles_over_mrv(statuses) == ["chest", "back"]
    assert "remove" in statuses[0].recommendation
