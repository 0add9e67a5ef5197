"""Recommendation and deload trigger schemas.

A recommendation is a tagged union: ``proposed_changes.kind`` is the
discriminant and selects the kind-specific payload. The payload models are
what gets stored in the JSON column and what the plan adjustment
collaborator receives when a recommendation is accepted.
"""

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from periodization.models.enums import (
    DeloadSeverity,
    DeloadSignal,
    DeloadType,
    PhaseType,
    RecommendationKind,
    RecommendationScope,
    RecommendationStatus,
    TriggerType,
    UserResponse,
    WeekType,
)


class TriggerData(BaseModel):
    """Structured description of the signal that fired."""

    metric: str
    threshold: float
    current_value: float | None = None
    direction: Literal["above", "below"]
    details: dict[str, Any] = Field(default_factory=dict)


# -----------------------------
# Proposed changes (tagged union)
# -----------------------------
class PhaseExtensionChanges(BaseModel):
    kind: Literal["phase_extension"] = "phase_extension"
    original_end_date: date
    proposed_end_date: date
    extension_days: int = Field(..., gt=0)
    affected_weeks: int = Field(default=0, ge=0)
    reason: str = "progress_behind"


class PhaseShortenChanges(BaseModel):
    kind: Literal["phase_shorten"] = "phase_shorten"
    original_end_date: date
    proposed_end_date: date
    shorten_days: int = Field(..., gt=0)
    reason: str = "progress_ahead"


class PhaseInsertChanges(BaseModel):
    kind: Literal["phase_insert"] = "phase_insert"
    insert_after_phase_id: str
    phase_type: PhaseType = PhaseType.RECOVERY
    start_date: date
    end_date: date
    duration_days: int = Field(..., gt=0)
    shifts_remaining_phases: bool = True
    reason: str = "fatigue_accumulation"


class WeekVolumeAdjustChanges(BaseModel):
    kind: Literal["week_volume_adjust"] = "week_volume_adjust"
    week_start: date
    original_hours: float
    proposed_hours: float
    original_tss: float = 0.0
    proposed_tss: float = 0.0
    volume_percentage_change: int
    reason: str


class WeekTypeChangeChanges(BaseModel):
    kind: Literal["week_type_change"] = "week_type_change"
    week_start: date
    original_type: WeekType
    proposed_type: WeekType = WeekType.RECOVERY
    reason: str


class ComplianceAlertChanges(BaseModel):
    kind: Literal["compliance_alert"] = "compliance_alert"
    alert_type: str = "compliance_warning"
    consecutive_low_weeks: int = Field(..., ge=0)
    avg_compliance: float | None = None
    recent_percentages: list[float] = Field(default_factory=list)


ProposedChanges = Annotated[
    PhaseExtensionChanges
    | PhaseShortenChanges
    | PhaseInsertChanges
    | WeekVolumeAdjustChanges
    | WeekTypeChangeChanges
    | ComplianceAlertChanges,
    Field(discriminator="kind"),
]

proposed_changes_adapter: TypeAdapter[ProposedChanges] = TypeAdapter(ProposedChanges)


def parse_proposed_changes(payload: dict[str, Any]) -> ProposedChanges:
    """Validate a stored or user-supplied payload into its kind-specific model."""
    return proposed_changes_adapter.validate_python(payload)


# -----------------------------
# Recommendations
# -----------------------------
class RecommendationDraft(BaseModel):
    """A recommendation built by an evaluator, not yet persisted."""

    user_id: str
    plan_id: str
    scope: RecommendationScope
    target_id: str
    trigger_type: TriggerType = TriggerType.PERFORMANCE
    trigger_data: TriggerData
    proposed_changes: ProposedChanges
    reasoning: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    priority: int = Field(..., ge=1, le=5)
    expires_at: datetime
    evidence_summary: dict[str, Any] = Field(default_factory=dict)
    projected_impact: dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> RecommendationKind:
        return RecommendationKind(self.proposed_changes.kind)


class Recommendation(RecommendationDraft):
    """A persisted recommendation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: RecommendationStatus = RecommendationStatus.PENDING
    created_at: datetime
    user_notes: str | None = None
    modified_changes: dict[str, Any] | None = None
    responded_at: datetime | None = None


# -----------------------------
# Deload
# -----------------------------
class DeloadTrigger(BaseModel):
    """A persisted deload trigger."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    trigger_type: DeloadSignal
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    severity: DeloadSeverity
    recommended_type: DeloadType
    duration_days: int
    volume_reduction: float = Field(..., ge=0.0, le=1.0)
    intensity_reduction: float = Field(..., ge=0.0, le=1.0)
    user_response: UserResponse = UserResponse.PENDING
    triggered_at: datetime
    responded_at: datetime | None = None
    response_notes: str | None = None
