"""Deload detection.

Combines independent fatigue signals into a single deload decision:

- TSB breach: tsb below the threshold (-15)
- MRV breach: at least 3 muscle groups over their MRV
- Plateau: at least 3 lifts stalled for 2+ weeks
- Low readiness: at least 3 recent readiness scores below 50

Severity grows with the number of signals (1 mild, 2 moderate, 3+ severe)
and is escalated to severe when TSB alone is deep enough (< -25).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from periodization.config.settings import DeloadSettings
from periodization.models.enums import DeloadSeverity, DeloadSignal, DeloadType
from periodization.models.metrics import StrengthProgress

# (volume_reduction, intensity_reduction) per deload type
DELOAD_REDUCTIONS: dict[DeloadType, tuple[float, float]] = {
    DeloadType.FULL: (0.5, 0.15),
    DeloadType.VOLUME: (0.4, 0.0),
    DeloadType.INTENSITY: (0.0, 0.1),
    DeloadType.ACTIVE_RECOVERY: (0.6, 0.3),
}


@dataclass(frozen=True)
class SignalHit:
    signal: DeloadSignal
    reason: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeloadDecision:
    """Outcome of deload detection.

    When should_deload is False the severity/type fields carry no meaning
    and duration/reductions are 0. suppressed is True when signals fired but
    a recent accepted deload put the decision inside the cooldown window.
    """

    should_deload: bool
    signals: tuple[SignalHit, ...] = ()
    severity: DeloadSeverity | None = None
    deload_type: DeloadType | None = None
    duration_days: int = 0
    volume_reduction: float = 0.0
    intensity_reduction: float = 0.0
    message: str = "No deload needed - continue training as planned"
    suggestions: tuple[str, ...] = ()
    suppressed: bool = False

    @property
    def primary_signal(self) -> DeloadSignal | None:
        if not self.signals:
            return None
        return self.signals[0].signal

    def trigger_data(self) -> dict[str, Any]:
        return {
            "signals": [{"type": s.signal.value, "reason": s.reason, **s.data} for s in self.signals],
            "message": self.message,
            "suggestions": list(self.suggestions),
        }


def collect_signals(
    tsb: float | None,
    muscles_over_mrv: list[str],
    plateaued: list[StrengthProgress],
    recent_readiness: list[float],
    config: DeloadSettings,
) -> list[SignalHit]:
    """Evaluate each fatigue signal independently."""
    hits: list[SignalHit] = []

    if tsb is not None and tsb < config.tsb_threshold:
        hits.append(
            SignalHit(
                signal=DeloadSignal.TSB,
                reason=f"TSB is {tsb:.1f}, below threshold of {config.tsb_threshold:g}",
                data={"tsb": round(tsb, 1), "threshold": config.tsb_threshold},
            )
        )

    if len(muscles_over_mrv) >= config.muscles_over_mrv:
        hits.append(
            SignalHit(
                signal=DeloadSignal.VOLUME,
                reason=f"{len(muscles_over_mrv)} muscles over MRV: {', '.join(muscles_over_mrv)}",
                data={"muscles": list(muscles_over_mrv), "threshold": config.muscles_over_mrv},
            )
        )

    stalled = [e for e in plateaued if e.weeks_without_progress >= config.plateau_weeks]
    if len(stalled) >= config.plateaued_exercises:
        hits.append(
            SignalHit(
                signal=DeloadSignal.PLATEAU,
                reason=f"{len(stalled)} exercises plateaued for {config.plateau_weeks}+ weeks",
                data={
                    "exercises": [
                        {"exercise_id": e.exercise_id, "weeks_without_progress": e.weeks_without_progress}
                        for e in stalled
                    ],
                    "threshold": config.plateau_weeks,
                },
            )
        )

    low_days = sum(1 for s in recent_readiness if s < config.low_readiness_threshold)
    if low_days >= config.low_readiness_days:
        hits.append(
            SignalHit(
                signal=DeloadSignal.RECOVERY,
                reason=(
                    f"{low_days} of the last {len(recent_readiness)} days had low readiness "
                    f"(<{config.low_readiness_threshold:g})"
                ),
                data={"low_days": low_days, "threshold": config.low_readiness_days},
            )
        )

    return hits


def classify_severity(hits: list[SignalHit], tsb: float | None, config: DeloadSettings) -> DeloadSeverity:
    if len(hits) >= 3 or (tsb is not None and tsb < config.severe_tsb_threshold):
        return DeloadSeverity.SEVERE
    if len(hits) == 2:
        return DeloadSeverity.MODERATE
    return DeloadSeverity.MILD


def choose_deload_type(hits: list[SignalHit], severity: DeloadSeverity) -> DeloadType:
    """Full for severe or combined signals; otherwise matched to the single cause."""
    kinds = {h.signal for h in hits}
    if severity == DeloadSeverity.SEVERE or len(kinds) > 1:
        return DeloadType.FULL
    if kinds <= {DeloadSignal.TSB, DeloadSignal.VOLUME, DeloadSignal.SCHEDULED}:
        return DeloadType.VOLUME
    if kinds == {DeloadSignal.PLATEAU}:
        return DeloadType.INTENSITY
    return DeloadType.ACTIVE_RECOVERY


def duration_for(severity: DeloadSeverity, config: DeloadSettings) -> int:
    return {
        DeloadSeverity.MILD: config.mild_duration_days,
        DeloadSeverity.MODERATE: config.moderate_duration_days,
        DeloadSeverity.SEVERE: config.severe_duration_days,
    }[severity]


def build_decision(
    hits: list[SignalHit],
    severity: DeloadSeverity,
    config: DeloadSettings,
    deload_type: DeloadType | None = None,
    duration_days: int | None = None,
) -> DeloadDecision:
    deload_type = deload_type or choose_deload_type(hits, severity)
    volume_reduction, intensity_reduction = DELOAD_REDUCTIONS[deload_type]
    duration = duration_days or duration_for(severity, config)

    suggestions = [f"Reduce training volume by {round(volume_reduction * 100)}%"]
    if intensity_reduction > 0:
        suggestions.append(f"Reduce weights by {round(intensity_reduction * 100)}%")
    suggestions.append(f"Duration: {duration} days")
    suggestions.append("Focus on mobility, sleep, and nutrition during deload")

    return DeloadDecision(
        should_deload=True,
        signals=tuple(hits),
        severity=severity,
        deload_type=deload_type,
        duration_days=duration,
        volume_reduction=volume_reduction,
        intensity_reduction=intensity_reduction,
        message=f"Deload recommended: {severity.value} fatigue detected from {', '.join(h.signal.value for h in hits)}",
        suggestions=tuple(suggestions),
    )


def detect_deload(
    tsb: float | None,
    muscles_over_mrv: list[str],
    plateaued: list[StrengthProgress],
    recent_readiness: list[float],
    days_since_last_deload: int | None,
    config: DeloadSettings | None = None,
) -> DeloadDecision:
    """Decide whether a deload is needed.

    Args:
        tsb: Current training stress balance (None when unknown)
        muscles_over_mrv: Muscle groups whose weekly sets are at or over MRV
        plateaued: Tracked lifts with their weeks without progress
        recent_readiness: Readiness scores of the last 7 days
        days_since_last_deload: Days since the last accepted deload, or since
                                training started when there never was one;
                                None when unknown
        config: Deload thresholds

    Returns:
        DeloadDecision. Without any signal a scheduled mild deload is
        proposed once days_since_last_deload exceeds max_days_without_deload.
    """
    config = config or DeloadSettings()
    hits = collect_signals(tsb, muscles_over_mrv, plateaued, recent_readiness, config)

    if not hits:
        if days_since_last_deload is not None and days_since_last_deload > config.max_days_without_deload:
            scheduled = SignalHit(
                signal=DeloadSignal.SCHEDULED,
                reason=f"{days_since_last_deload} days since last deload (max {config.max_days_without_deload})",
                data={"days_since_last_deload": days_since_last_deload},
            )
            return build_decision([scheduled], DeloadSeverity.MILD, config, DeloadType.VOLUME)
        return DeloadDecision(should_deload=False)

    severity = classify_severity(hits, tsb, config)
    decision = build_decision(hits, severity, config)

    in_cooldown = days_since_last_deload is not None and days_since_last_deload < config.deload_cooldown_days
    if in_cooldown and severity == DeloadSeverity.MILD:
        logger.debug(
            "Mild deload suppressed during cooldown",
            days_since_last_deload=days_since_last_deload,
            signals=[h.signal.value for h in hits],
        )
        return DeloadDecision(should_deload=False, signals=tuple(hits), severity=severity, suppressed=True)

    return decision


def manual_decision(
    deload_type: DeloadType,
    duration_days: int | None = None,
    reason: str | None = None,
    config: DeloadSettings | None = None,
) -> DeloadDecision:
    """Build the decision for a user-initiated deload."""
    config = config or DeloadSettings()
    hit = SignalHit(signal=DeloadSignal.MANUAL, reason=reason or "User requested deload")
    return build_decision([hit], DeloadSeverity.MODERATE, config, deload_type, duration_days)
