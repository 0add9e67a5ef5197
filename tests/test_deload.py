from factories import make_strength
from periodization.adaptation.deload import detect_deload, manual_decision
from periodization.models.enums import DeloadSeverity, DeloadSignal, DeloadType

LOW_READINESS = [44.0, 40.0, 36.0, 32.0, 28.0, 24.0, 20.0]
GOOD_READINESS = [70.0, 72.0, 75.0]


def test_no_signal_no_deload():
    decision = detect_deload(tsb=-5.0, muscles_over_mrv=[], plateaued=[], recent_readiness=GOOD_READINESS, days_since_last_deload=10)

    assert decision.should_deload is False
    assert decision.duration_days == 0


def test_single_volume_signal_is_mild_volume_deload():
    decision = detect_deload(
        tsb=0.0,
        muscles_over_mrv=["chest", "back", "quads"],
        plateaued=[],
        recent_readiness=GOOD_READINESS,
        days_since_last_deload=30,
    )

    assert decision.should_deload is True
    assert decision.severity == DeloadSeverity.MILD
    assert decision.deload_type == DeloadType.VOLUME
    assert decision.duration_days == 5
    assert decision.volume_reduction == 0.4
    assert decision.intensity_reduction == 0.0
    assert decision.primary_signal == DeloadSignal.VOLUME


def test_plateau_only_is_intensity_deload():
    decision = detect_deload(
        tsb=0.0,
        muscles_over_mrv=[],
        plateaued=list(make_strength(10, 20, 30, stalled_weeks=3).exercises),
        recent_readiness=GOOD_READINESS,
        days_since_last_deload=30,
    )

    assert decision.deload_type == DeloadType.INTENSITY


def test_readiness_only_is_active_recovery():
    decision = detect_deload(
        tsb=0.0, muscles_over_mrv=[], plateaued=[], recent_readiness=LOW_READINESS, days_since_last_deload=30
    )

    assert decision.deload_type == DeloadType.ACTIVE_RECOVERY
    assert decision.volume_reduction == 0.6


def test_two_signals_are_moderate_full_deload():
    decision = detect_deload(
        tsb=-18.0, muscles_over_mrv=[], plateaued=[], recent_readiness=LOW_READINESS, days_since_last_deload=30
    )

    assert decision.severity == DeloadSeverity.MODERATE
    assert decision.deload_type == DeloadType.FULL
    assert decision.duration_days == 7


def test_three_signals_are_severe():
    decision = detect_deload(
        tsb=-18.0,
        muscles_over_mrv=["chest", "back", "quads"],
        plateaued=[],
        recent_readiness=LOW_READINESS,
        days_since_last_deload=30,
    )

    assert decision.severity == DeloadSeverity.SEVERE
    assert decision.duration_days == 10


def test_fatigue_and_low_readiness_with_deep_tsb_is_severe():
    decision = detect_deload(
        tsb=-28.0, muscles_over_mrv=[], plateaued=[], recent_readiness=LOW_READINESS, days_since_last_deload=30
    )

    assert decision.should_deload is True
    assert decision.severity == DeloadSeverity.SEVERE
    assert decision.deload_type == DeloadType.FULL


def test_severity_is_monotonic_in_tsb_depth():
    order = [DeloadSeverity.MILD, DeloadSeverity.MODERATE, DeloadSeverity.SEVERE]
    previous = 0
    for tsb in (-16.0, -20.0, -24.0, -26.0, -35.0):
        decision = detect_deload(tsb=tsb, muscles_over_mrv=[], plateaued=[], recent_readiness=[], days_since_last_deload=30)
        rank = order.index(decision.severity)
        assert rank >= previous
        previous = rank
    assert previous == 2


def test_scheduled_deload_after_long_stretch():
    decision = detect_deload(tsb=0.0, muscles_over_mrv=[], plateaued=[], recent_readiness=[], days_since_last_deload=50)

    assert decision.should_deload is True
    assert decision.primary_signal == DeloadSignal.SCHEDULED
    assert decision.severity == DeloadSeverity.MILD
    assert decision.deload_type == DeloadType.VOLUME


def test_mild_trigger_suppressed_right_after_deload():
    decision = detect_deload(tsb=-16.0, muscles_over_mrv=[], plateaued=[], recent_readiness=[], days_since_last_deload=5)

    assert decision.should_deload is False
    assert decision.suppressed is True


def test_severe_trigger_not_suppressed_by_cooldown():
    decision = detect_deload(tsb=-30.0, muscles_over_mrv=[], plateaued=[], recent_readiness=[], days_since_last_deload=5)

    assert decision.should_deload is True
    assert decision.severity == DeloadSeverity.SEVERE


def test_manual_decision_uses_requested_type_and_duration():
    decision = manual_decision(DeloadType.INTENSITY, duration_days=4, reason="Travel week")

    assert decision.should_deload is True
    assert decision.primary_signal == DeloadSignal.MANUAL
    assert decision.severity == DeloadSeverity.MODERATE
    assert decision.duration_days == 4
    assert decision.intensity_reduction == 0.1
    assert decision.trigger_data()["signals"][0]["reason"] == "Travel week"
