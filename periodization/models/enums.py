"""Enumerations shared by the adaptation engine."""

from enum import StrEnum


class PhaseType(StrEnum):
    BASE = "base"
    BUILD = "build"
    PEAK = "peak"
    TAPER = "taper"
    RECOVERY = "recovery"


class WeekType(StrEnum):
    NORMAL = "normal"
    BUILD = "build"
    RECOVERY = "recovery"
    DELOAD = "deload"
    TAPER = "taper"
    TEST = "test"


class LoadTrend(StrEnum):
    RISING = "rising"
    STABLE = "stable"
    FALLING = "falling"


class DirectionTrend(StrEnum):
    """Trend of a "higher is better" signal (readiness, TSB, HRV)."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class AcwrBand(StrEnum):
    OPTIMAL = "optimal"
    CAUTION = "caution"
    HIGH_RISK = "high_risk"
    UNDEFINED = "undefined"


class StrainRisk(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


class TsbStatus(StrEnum):
    FRESH = "fresh"
    NEUTRAL = "neutral"
    FATIGUED = "fatigued"
    VERY_FATIGUED = "very_fatigued"


class RecommendedIntensity(StrEnum):
    REDUCE = "reduce"
    MAINTAIN = "maintain"
    PUSH = "push"


class ExperienceLevel(StrEnum):
    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class VolumeStatus(StrEnum):
    BELOW_MEV = "below_mev"
    APPROACHING_MEV = "approaching_mev"
    IN_MAV = "in_mav"
    APPROACHING_MRV = "approaching_mrv"
    OVER_MRV = "over_mrv"


class ProgressStatus(StrEnum):
    AHEAD = "ahead"
    ON_TRACK = "on_track"
    BEHIND = "behind"
    AT_RISK = "at_risk"


class DeloadSignal(StrEnum):
    TSB = "tsb"
    VOLUME = "volume"
    PLATEAU = "plateau"
    RECOVERY = "recovery"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class DeloadSeverity(StrEnum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class DeloadType(StrEnum):
    VOLUME = "volume"
    INTENSITY = "intensity"
    FULL = "full"
    ACTIVE_RECOVERY = "active_recovery"


class UserResponse(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    MODIFIED = "modified"
    DISMISSED = "dismissed"


class RecommendationKind(StrEnum):
    PHASE_EXTENSION = "phase_extension"
    PHASE_SHORTEN = "phase_shorten"
    PHASE_INSERT = "phase_insert"
    WEEK_VOLUME_ADJUST = "week_volume_adjust"
    WEEK_TYPE_CHANGE = "week_type_change"
    COMPLIANCE_ALERT = "compliance_alert"


class RecommendationScope(StrEnum):
    PHASE = "phase"
    WEEK = "week"


class RecommendationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    MODIFIED = "modified"
    DISMISSED = "dismissed"
    EXPIRED = "expired"


class TriggerType(StrEnum):
    PERFORMANCE = "performance"
    READINESS = "readiness"
    COMPLIANCE = "compliance"
    TIME = "time"
