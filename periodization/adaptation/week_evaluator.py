"""Week-level adaptation analysis.

Classifies the athlete's recovery state for the current plan week and
proposes at most one structural change (recovery week or volume adjustment)
plus an optional compliance alert. Every week-scope recommendation expires
at the end of the target week.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal

from periodization.adaptation.recommendation_engine import (
    compliance_evidence,
    compute_confidence,
    load_evidence,
    readiness_evidence,
    week_end_expiry,
)
from periodization.config.settings import EvaluatorSettings
from periodization.models.enums import (
    DirectionTrend,
    RecommendationScope,
    TriggerType,
    TsbStatus,
    WeekType,
)
from periodization.models.metrics import ComplianceSummary, ComplianceWindow, LoadMetrics, ReadinessSummary
from periodization.models.recommendation import (
    ComplianceAlertChanges,
    RecommendationDraft,
    TriggerData,
    WeekTypeChangeChanges,
    WeekVolumeAdjustChanges,
)
from periodization.models.records import WeeklyTarget

VolumeDirection = Literal["increase", "decrease"]


@dataclass(frozen=True)
class WeekAnalysis:
    """Recovery and compliance state of the current plan week."""

    week_id: str | None
    week_start: date | None
    week_type: WeekType | None
    compliance: ComplianceWindow | None
    consecutive_low_weeks: int
    tsb: float
    tsb_status: TsbStatus
    readiness_trend: DirectionTrend
    avg_readiness_7_day: float | None
    consecutive_declining_days: int
    needs_recovery: bool
    volume_recommendation: VolumeDirection | None = None
    volume_change_pct: int | None = None
    suggested_week_type: WeekType | None = None


def classify_tsb(tsb: float, config: EvaluatorSettings | None = None) -> TsbStatus:
    """fresh > 10, neutral -10..10, fatigued -20..<-10, very fatigued < -20."""
    config = config or EvaluatorSettings()
    if tsb > config.tsb_fresh:
        return TsbStatus.FRESH
    if tsb >= config.tsb_neutral_low:
        return TsbStatus.NEUTRAL
    if tsb >= config.tsb_fatigued_low:
        return TsbStatus.FATIGUED
    return TsbStatus.VERY_FATIGUED


def needs_recovery(tsb_status: TsbStatus, readiness: ReadinessSummary, config: EvaluatorSettings) -> bool:
    """Recovery is needed on deep fatigue or corroborated readiness decline.

    Readiness clauses only apply when readiness data exists; a missing
    average is never treated as a low one.
    """
    if tsb_status == TsbStatus.VERY_FATIGUED:
        return True
    if tsb_status == TsbStatus.FATIGUED and readiness.trend == DirectionTrend.DECLINING:
        return True
    if readiness.consecutive_declining_days >= config.recovery_declining_days:
        return True
    avg = readiness.avg_last_7_days
    return avg is not None and avg < config.recovery_readiness_avg and readiness.trend != DirectionTrend.IMPROVING


def decide_volume_change(
    tsb_status: TsbStatus,
    readiness: ReadinessSummary,
    consecutive_low_weeks: int,
    config: EvaluatorSettings,
) -> tuple[VolumeDirection | None, int | None]:
    if tsb_status == TsbStatus.FATIGUED:
        return "decrease", config.fatigued_volume_change_pct
    if consecutive_low_weeks >= config.compliance_alert_weeks:
        return "decrease", config.low_compliance_volume_change_pct
    avg = readiness.avg_last_7_days
    if tsb_status == TsbStatus.FRESH and avg is not None and avg > config.increase_readiness_avg:
        return "increase", config.increase_volume_change_pct
    return None, None


def analyze_week(
    target: WeeklyTarget | None,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    compliance: ComplianceSummary,
    config: EvaluatorSettings | None = None,
) -> WeekAnalysis:
    config = config or EvaluatorSettings()
    tsb = load.current.tsb
    tsb_status = classify_tsb(tsb, config)
    recovery = needs_recovery(tsb_status, readiness, config)

    suggested_type: WeekType | None = None
    direction: VolumeDirection | None = None
    change_pct: int | None = None
    if target is not None:
        if recovery:
            if target.week_type not in (WeekType.RECOVERY, WeekType.DELOAD):
                suggested_type = WeekType.RECOVERY
        else:
            direction, change_pct = decide_volume_change(
                tsb_status, readiness, compliance.consecutive_low_weeks, config
            )

    return WeekAnalysis(
        week_id=target.id if target else None,
        week_start=target.week_start if target else None,
        week_type=target.week_type if target else None,
        compliance=compliance.current_week,
        consecutive_low_weeks=compliance.consecutive_low_weeks,
        tsb=tsb,
        tsb_status=tsb_status,
        readiness_trend=readiness.trend,
        avg_readiness_7_day=readiness.avg_last_7_days,
        consecutive_declining_days=readiness.consecutive_declining_days,
        needs_recovery=recovery,
        volume_recommendation=direction,
        volume_change_pct=change_pct,
        suggested_week_type=suggested_type,
    )


def _week_confidence(load: LoadMetrics, readiness: ReadinessSummary, compliance: ComplianceSummary) -> float:
    bonuses: list[float] = []
    if load.has_data:
        bonuses.append(0.15)
    if len(compliance.recent_weeks) >= 2:
        bonuses.append(0.1)
    if readiness.current is not None:
        bonuses.append(0.15)
    if readiness.avg_last_7_days is not None and len(readiness.recent_scores) >= 3:
        bonuses.append(0.1)
    return compute_confidence(bonuses)


def _type_change_reasoning(analysis: WeekAnalysis) -> str:
    parts: list[str] = []
    if analysis.tsb_status == TsbStatus.VERY_FATIGUED:
        parts.append(
            f"Your Training Stress Balance (TSB) is at {round(analysis.tsb)}, indicating significant accumulated fatigue."
        )
    elif analysis.tsb_status == TsbStatus.FATIGUED:
        parts.append(f"Your TSB is {round(analysis.tsb)}, showing moderate fatigue accumulation.")

    if analysis.readiness_trend == DirectionTrend.DECLINING and analysis.avg_readiness_7_day is not None:
        parts.append(
            f"Your readiness scores have been declining over the past week, "
            f"averaging {round(analysis.avg_readiness_7_day)}/100."
        )
    if analysis.consecutive_declining_days >= 5:
        parts.append(f"You've had {analysis.consecutive_declining_days} consecutive days of declining readiness.")

    parts.append("Converting this week to a recovery week will help your body absorb the training stress.")
    parts.append("Recovery weeks typically reduce volume by 40-50% while keeping some intensity.")
    return " ".join(parts)


def _type_change_draft(
    user_id: str,
    plan_id: str,
    target: WeeklyTarget,
    analysis: WeekAnalysis,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    compliance: ComplianceSummary,
    config: EvaluatorSettings,
) -> RecommendationDraft:
    very_fatigued = analysis.tsb_status == TsbStatus.VERY_FATIGUED
    if very_fatigued or analysis.tsb_status == TsbStatus.FATIGUED:
        trigger_type = TriggerType.PERFORMANCE
        trigger = TriggerData(
            metric="tsb",
            threshold=config.tsb_fatigued_low if very_fatigued else config.tsb_neutral_low,
            current_value=round(analysis.tsb, 1),
            direction="below",
        )
    else:
        trigger_type = TriggerType.READINESS
        trigger = TriggerData(
            metric="readiness",
            threshold=config.recovery_readiness_avg,
            current_value=analysis.avg_readiness_7_day,
            direction="below",
            details={"consecutive_declining_days": analysis.consecutive_declining_days},
        )

    return RecommendationDraft(
        user_id=user_id,
        plan_id=plan_id,
        scope=RecommendationScope.WEEK,
        target_id=target.id,
        trigger_type=trigger_type,
        trigger_data=trigger,
        proposed_changes=WeekTypeChangeChanges(
            week_start=target.week_start,
            original_type=target.week_type,
            proposed_type=WeekType.RECOVERY,
            reason="tsb_very_low" if very_fatigued else "readiness_declining",
        ),
        reasoning=_type_change_reasoning(analysis),
        confidence_score=_week_confidence(load, readiness, compliance),
        priority=1 if very_fatigued else 2,
        expires_at=week_end_expiry(target.week_start),
        evidence_summary={
            "training_load": load_evidence(load),
            "readiness": readiness_evidence(readiness),
            "compliance": compliance_evidence(compliance),
        },
        projected_impact={
            "recovery_benefit": "High - allows body to absorb training stress",
            "fitness_impact": "Minimal short-term, positive long-term",
        },
    )


def _volume_draft(
    user_id: str,
    plan_id: str,
    target: WeeklyTarget,
    analysis: WeekAnalysis,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    compliance: ComplianceSummary,
    config: EvaluatorSettings,
) -> RecommendationDraft | None:
    if target.target_hours <= 0 or analysis.volume_change_pct is None:
        return None

    pct = analysis.volume_change_pct
    proposed_hours = round(target.target_hours * (1 + pct / 100), 1)
    proposed_tss = round(target.target_tss * (1 + pct / 100), 1)
    decrease = analysis.volume_recommendation == "decrease"

    if decrease and analysis.tsb_status == TsbStatus.FATIGUED:
        reason = "recovery_needed"
        reasoning = (
            f"Your TSB is {round(analysis.tsb)}, showing moderate fatigue. "
            f"Reducing this week's volume by {abs(pct)}% lets you recover without losing momentum."
        )
        trigger = TriggerData(
            metric="tsb", threshold=config.tsb_neutral_low, current_value=round(analysis.tsb, 1), direction="below"
        )
        trigger_type = TriggerType.PERFORMANCE
    elif decrease:
        reason = "compliance_low"
        reasoning = (
            f"You've completed less than {round(config.low_compliance * 100)}% of planned training for "
            f"{analysis.consecutive_low_weeks} consecutive weeks. Adjusting targets by {pct}% "
            f"brings them to achievable levels."
        )
        last = compliance.recent_weeks[0].hours_percent if compliance.recent_weeks else None
        trigger = TriggerData(
            metric="compliance",
            threshold=config.low_compliance,
            current_value=last,
            direction="below",
            details={"consecutive_weeks": analysis.consecutive_low_weeks},
        )
        trigger_type = TriggerType.COMPLIANCE
    else:
        reason = "capacity_available"
        reasoning = "Good recovery state and high readiness indicate capacity for more training."
        trigger = TriggerData(
            metric="readiness",
            threshold=config.increase_readiness_avg,
            current_value=analysis.avg_readiness_7_day,
            direction="above",
        )
        trigger_type = TriggerType.READINESS

    return RecommendationDraft(
        user_id=user_id,
        plan_id=plan_id,
        scope=RecommendationScope.WEEK,
        target_id=target.id,
        trigger_type=trigger_type,
        trigger_data=trigger,
        proposed_changes=WeekVolumeAdjustChanges(
            week_start=target.week_start,
            original_hours=target.target_hours,
            proposed_hours=proposed_hours,
            original_tss=target.target_tss,
            proposed_tss=proposed_tss,
            volume_percentage_change=pct,
            reason=reason,
        ),
        reasoning=reasoning,
        confidence_score=_week_confidence(load, readiness, compliance),
        priority=3 if decrease else 4,
        expires_at=week_end_expiry(target.week_start),
        evidence_summary={
            "training_load": load_evidence(load),
            "readiness": readiness_evidence(readiness),
            "compliance": compliance_evidence(compliance),
        },
        projected_impact={"new_weekly_hours": proposed_hours, "change_percent": pct},
    )


def _compliance_alert_draft(
    user_id: str,
    plan_id: str,
    target: WeeklyTarget,
    compliance: ComplianceSummary,
    config: EvaluatorSettings,
) -> RecommendationDraft:
    weeks = compliance.consecutive_low_weeks
    low_weeks = compliance.recent_weeks[:weeks]
    avg = sum(w.hours_percent for w in low_weeks) / len(low_weeks) if low_weeks else None
    threshold_pct = round(config.low_compliance * 100)

    reasoning = (
        f"You've completed less than {threshold_pct}% of your planned training for {weeks} consecutive weeks. "
        "This could mean targets are too ambitious, or that life circumstances are making training difficult. "
        "Consider adjusting weekly targets or addressing the barriers to training."
    )

    return RecommendationDraft(
        user_id=user_id,
        plan_id=plan_id,
        scope=RecommendationScope.WEEK,
        target_id=target.id,
        trigger_type=TriggerType.COMPLIANCE,
        trigger_data=TriggerData(
            metric="compliance",
            threshold=config.low_compliance,
            current_value=round(avg, 4) if avg is not None else None,
            direction="below",
            details={"consecutive_weeks": weeks},
        ),
        proposed_changes=ComplianceAlertChanges(
            consecutive_low_weeks=weeks,
            avg_compliance=round(avg, 4) if avg is not None else None,
            recent_percentages=[round(w.hours_percent, 4) for w in low_weeks],
        ),
        reasoning=reasoning,
        confidence_score=compute_confidence([0.1 * min(weeks, 4)]),
        priority=3,
        expires_at=week_end_expiry(target.week_start),
        evidence_summary={"compliance": compliance_evidence(compliance)},
        projected_impact={"risk": "Continued low compliance may hinder progress toward goals"},
    )


def evaluate_week(
    user_id: str,
    plan_id: str,
    target: WeeklyTarget | None,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    compliance: ComplianceSummary,
    config: EvaluatorSettings | None = None,
) -> tuple[WeekAnalysis, list[RecommendationDraft]]:
    """Analyze the current week and build its recommendations.

    Args:
        user_id: Athlete owning the plan
        plan_id: Plan being evaluated
        target: Weekly target covering today, None when the plan has none
        load: Current load metrics
        readiness: Readiness summary
        compliance: Compliance summary (current week excluded from streaks)
        config: Evaluator thresholds

    Returns:
        (analysis, drafts). Drafts is empty without a weekly target; otherwise
        it holds at most one week_type_change or week_volume_adjust plus an
        optional compliance_alert.
    """
    config = config or EvaluatorSettings()
    analysis = analyze_week(target, load, readiness, compliance, config)
    if target is None:
        return analysis, []

    drafts: list[RecommendationDraft] = []
    if analysis.suggested_week_type == WeekType.RECOVERY:
        drafts.append(_type_change_draft(user_id, plan_id, target, analysis, load, readiness, compliance, config))
    elif analysis.volume_recommendation is not None:
        volume = _volume_draft(user_id, plan_id, target, analysis, load, readiness, compliance, config)
        if volume is not None:
            drafts.append(volume)

    if compliance.consecutive_low_weeks >= config.compliance_alert_weeks:
        drafts.append(_compliance_alert_draft(user_id, plan_id, target, compliance, config))

    return analysis, drafts
