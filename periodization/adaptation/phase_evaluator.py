"""Phase-level adaptation analysis.

Compares progress toward the phase goals with the share of the phase that
has elapsed and proposes at most one structural change, in precedence
order: insert a recovery phase, extend the phase, shorten the phase.

Also owns the phase timeline view and the pure function that applies an
accepted phase change to a list of phases.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal

from loguru import logger

from periodization.adaptation.errors import PlanAdjustmentError
from periodization.adaptation.recommendation_engine import (
    compliance_evidence,
    compute_confidence,
    days_expiry,
    load_evidence,
    readiness_evidence,
    strength_evidence,
)
from periodization.config.settings import EvaluatorSettings
from periodization.models.enums import (
    DirectionTrend,
    PhaseType,
    ProgressStatus,
    RecommendationScope,
    TriggerType,
)
from periodization.models.metrics import ComplianceSummary, LoadMetrics, ReadinessSummary, StrengthSummary
from periodization.models.recommendation import (
    PhaseExtensionChanges,
    PhaseInsertChanges,
    PhaseShortenChanges,
    ProposedChanges,
    RecommendationDraft,
    TriggerData,
)
from periodization.models.records import AdaptationEntry, Phase

NO_ADJUSTMENT_TYPES = (PhaseType.RECOVERY, PhaseType.TAPER)


@dataclass(frozen=True)
class PhaseAnalysis:
    """Progress of the current phase against its calendar."""

    phase_id: str | None
    phase_name: str = "No Active Phase"
    phase_type: PhaseType | None = None
    start_date: date | None = None
    end_date: date | None = None
    original_end_date: date | None = None
    projected_end_date: date | None = None
    total_days: int = 0
    days_elapsed: int = 0
    days_remaining: int = 0
    percent_complete: float = 0.0
    strength_progress_percent: float | None = None
    compliance_avg: float | None = None
    weeks_completed: int = 0
    weeks_total: int = 0
    status: ProgressStatus = ProgressStatus.ON_TRACK
    should_insert_recovery: bool = False
    should_extend: bool = False
    should_shorten: bool = False
    adjustment_days: int = 0
    reason: str | None = None


@dataclass(frozen=True)
class PhaseTimelineEntry:
    id: str
    name: str
    type: PhaseType
    start_date: date
    end_date: date
    original_end_date: date | None
    projected_end_date: date
    status: Literal["completed", "current", "upcoming"]
    progress_percent: float


def find_current_phase(phases: list[Phase], today: date) -> Phase | None:
    """The phase with start <= today <= end, if any."""
    for phase in sorted(phases, key=lambda p: p.start_date):
        if phase.start_date <= today <= phase.end_date:
            return phase
    return None


def classify_progress(
    progress: float | None,
    percent_complete: float,
    overall_compliance: float | None,
    config: EvaluatorSettings,
) -> ProgressStatus:
    """Ahead/behind when goal progress strays more than the tolerance from elapsed time."""
    if progress is None:
        return ProgressStatus.ON_TRACK
    delta = progress - percent_complete
    if delta > config.progress_tolerance:
        return ProgressStatus.AHEAD
    if delta < -config.progress_tolerance:
        if overall_compliance is not None and overall_compliance < config.at_risk_compliance:
            return ProgressStatus.AT_RISK
        return ProgressStatus.BEHIND
    return ProgressStatus.ON_TRACK


def extension_days_for(deficit: float, progress: float, days_elapsed: int, config: EvaluatorSettings) -> int:
    """Days needed to close the deficit at the observed daily progress rate, capped."""
    daily_rate = progress / max(1, days_elapsed)
    days = math.ceil(deficit / max(config.min_daily_progress_rate, daily_rate))
    return min(days, config.extension_cap_days)


def analyze_phase(
    phase: Phase | None,
    today: date,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    compliance: ComplianceSummary,
    strength: StrengthSummary,
    config: EvaluatorSettings | None = None,
) -> PhaseAnalysis:
    config = config or EvaluatorSettings()
    if phase is None:
        return PhaseAnalysis(phase_id=None)

    total_days = max(1, (phase.end_date - phase.start_date).days)
    days_remaining = max(0, (phase.end_date - today).days)
    days_elapsed = min(total_days, max(0, (today - phase.start_date).days))
    percent_complete = round(days_elapsed / total_days * 100, 1)

    progress = strength.average_percent_to_target
    status = classify_progress(progress, percent_complete, compliance.overall_compliance, config)

    insert = False
    extend = False
    shorten = False
    adjustment = 0
    reason: str | None = None

    avg_readiness = readiness.avg_last_7_days
    if (
        load.current.tsb < config.insert_tsb
        and avg_readiness is not None
        and avg_readiness < config.insert_readiness_avg
        and phase.type not in NO_ADJUSTMENT_TYPES
    ):
        insert = True
        adjustment = config.insert_duration_days
        reason = "Significant fatigue accumulation detected. Recovery phase recommended before continuing."
    elif progress is not None and status in (ProgressStatus.BEHIND, ProgressStatus.AT_RISK):
        deficit = percent_complete - progress
        if deficit > config.extension_deficit and days_remaining < config.extension_max_days_remaining:
            extend = True
            adjustment = extension_days_for(deficit, progress, days_elapsed, config)
            reason = f"Progress is {round(deficit)}% behind schedule. Extension recommended to achieve phase goals."
    elif (
        progress is not None
        and status == ProgressStatus.AHEAD
        and days_remaining > config.shorten_min_days_remaining
        and progress > config.shorten_min_progress
    ):
        adjustment = math.floor(days_remaining * config.shorten_fraction)
        shorten = adjustment > 0
        reason = f"Progress is {round(progress - percent_complete)}% ahead of schedule. Phase goals nearly achieved."

    if extend:
        projected = phase.end_date + timedelta(days=adjustment)
    elif shorten:
        projected = phase.end_date - timedelta(days=adjustment)
    else:
        projected = phase.end_date

    return PhaseAnalysis(
        phase_id=phase.id,
        phase_name=phase.name,
        phase_type=phase.type,
        start_date=phase.start_date,
        end_date=phase.end_date,
        original_end_date=phase.original_end_date or phase.end_date,
        projected_end_date=projected,
        total_days=total_days,
        days_elapsed=days_elapsed,
        days_remaining=days_remaining,
        percent_complete=percent_complete,
        strength_progress_percent=progress,
        compliance_avg=compliance.overall_compliance,
        weeks_completed=days_elapsed // 7,
        weeks_total=math.ceil(total_days / 7),
        status=status,
        should_insert_recovery=insert,
        should_extend=extend,
        should_shorten=shorten,
        adjustment_days=adjustment,
        reason=reason,
    )


def _phase_confidence(analysis: PhaseAnalysis, compliance: ComplianceSummary, strength: StrengthSummary) -> float:
    bonuses: list[float] = []
    if analysis.weeks_completed >= 3:
        bonuses.append(0.15)
    elif analysis.weeks_completed >= 2:
        bonuses.append(0.1)
    if len(compliance.recent_weeks) >= 2:
        bonuses.append(0.1)
    if strength.exercises_tracked > 3:
        bonuses.append(0.1)
    if analysis.status in (ProgressStatus.AHEAD, ProgressStatus.AT_RISK):
        bonuses.append(0.1)
    return compute_confidence(bonuses)


def _insert_confidence(load: LoadMetrics, readiness: ReadinessSummary) -> float:
    bonuses = [0.2, 0.1]
    if readiness.trend == DirectionTrend.DECLINING:
        bonuses.append(0.1)
    if readiness.consecutive_declining_days >= 5:
        bonuses.append(0.05)
    if load.tsb_trend == DirectionTrend.DECLINING:
        bonuses.append(0.05)
    return compute_confidence(bonuses)


def _insert_draft(
    user_id: str,
    plan_id: str,
    phase: Phase,
    analysis: PhaseAnalysis,
    today: date,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    config: EvaluatorSettings,
) -> RecommendationDraft:
    start = phase.end_date + timedelta(days=1)
    end = start + timedelta(days=config.insert_duration_days - 1)
    tsb = load.current.tsb
    avg = readiness.avg_last_7_days or 0.0

    reasoning = (
        f"Your body is showing significant signs of accumulated fatigue. "
        f"TSB is at {round(tsb)} (very fatigued) and your average readiness over the past week is {round(avg)}/100. "
        f"Inserting a {config.insert_duration_days}-day recovery phase after {phase.name or 'this phase'} "
        f"lets you absorb the training stress and come back stronger."
    )

    return RecommendationDraft(
        user_id=user_id,
        plan_id=plan_id,
        scope=RecommendationScope.PHASE,
        target_id=phase.id,
        trigger_type=TriggerType.PERFORMANCE,
        trigger_data=TriggerData(
            metric="tsb",
            threshold=config.insert_tsb,
            current_value=round(tsb, 1),
            direction="below",
            details={"avg_readiness_7_day": readiness.avg_last_7_days},
        ),
        proposed_changes=PhaseInsertChanges(
            insert_after_phase_id=phase.id,
            phase_type=PhaseType.RECOVERY,
            start_date=start,
            end_date=end,
            duration_days=config.insert_duration_days,
        ),
        reasoning=reasoning,
        confidence_score=_insert_confidence(load, readiness),
        priority=1,
        expires_at=days_expiry(today, config.insert_expiry_days),
        evidence_summary={
            "training_load": load_evidence(load),
            "readiness": readiness_evidence(readiness),
        },
        projected_impact={
            "recovery_benefit": "Critical for preventing overtraining",
            "timeline_impact": f"Shifts remaining phases by {config.insert_duration_days} days",
        },
    )


def _extension_draft(
    user_id: str,
    plan_id: str,
    phase: Phase,
    analysis: PhaseAnalysis,
    today: date,
    load: LoadMetrics,
    compliance: ComplianceSummary,
    strength: StrengthSummary,
    config: EvaluatorSettings,
) -> RecommendationDraft:
    days = analysis.adjustment_days
    progress = analysis.strength_progress_percent or 0.0
    new_end = phase.end_date + timedelta(days=days)

    parts = [f"Your {phase.name or 'current'} phase is {'at risk' if analysis.status == ProgressStatus.AT_RISK else 'behind schedule'}."]
    parts.append(
        f"You're at {round(progress)}% of phase goals, but {round(analysis.percent_complete)}% of the phase time has passed."
    )
    if analysis.compliance_avg is not None and analysis.compliance_avg < config.low_compliance:
        parts.append(
            f"Average compliance has been {round(analysis.compliance_avg * 100)}%, which may have slowed progress."
        )
    parts.append(f"Extending the phase by {days} days gives you more time to reach your goals without rushing.")

    return RecommendationDraft(
        user_id=user_id,
        plan_id=plan_id,
        scope=RecommendationScope.PHASE,
        target_id=phase.id,
        trigger_type=TriggerType.PERFORMANCE,
        trigger_data=TriggerData(
            metric="phase_progress",
            threshold=analysis.percent_complete - config.progress_tolerance,
            current_value=round(progress, 1),
            direction="below",
            details={"expected": analysis.percent_complete},
        ),
        proposed_changes=PhaseExtensionChanges(
            original_end_date=phase.end_date,
            proposed_end_date=new_end,
            extension_days=days,
            affected_weeks=math.ceil(days / 7),
        ),
        reasoning=" ".join(parts),
        confidence_score=_phase_confidence(analysis, compliance, strength),
        priority=2,
        expires_at=days_expiry(today, config.phase_expiry_days),
        evidence_summary={
            "phase_progress": {
                "current": progress,
                "expected": analysis.percent_complete,
                "status": analysis.status.value,
            },
            "compliance": compliance_evidence(compliance),
            "training_load": load_evidence(load),
            "strength_progress": strength_evidence(strength),
        },
        projected_impact={
            "new_end_date": new_end.isoformat(),
            "additional_weeks": math.ceil(days / 7),
            "goal_achievement": "Higher likelihood of achieving phase goals",
        },
    )


def _shorten_draft(
    user_id: str,
    plan_id: str,
    phase: Phase,
    analysis: PhaseAnalysis,
    today: date,
    compliance: ComplianceSummary,
    strength: StrengthSummary,
    config: EvaluatorSettings,
) -> RecommendationDraft:
    days = analysis.adjustment_days
    progress = analysis.strength_progress_percent or 0.0
    new_end = phase.end_date - timedelta(days=days)

    reasoning = (
        f"Your {phase.name or 'current'} phase is progressing ahead of schedule. "
        f"You've achieved {round(progress)}% of phase goals with {analysis.days_remaining} days remaining. "
        f"Shortening this phase by {days} days lets you move to the next phase while keeping momentum."
    )

    return RecommendationDraft(
        user_id=user_id,
        plan_id=plan_id,
        scope=RecommendationScope.PHASE,
        target_id=phase.id,
        trigger_type=TriggerType.PERFORMANCE,
        trigger_data=TriggerData(
            metric="phase_progress",
            threshold=config.shorten_min_progress,
            current_value=round(progress, 1),
            direction="above",
            details={"expected": analysis.percent_complete},
        ),
        proposed_changes=PhaseShortenChanges(
            original_end_date=phase.end_date,
            proposed_end_date=new_end,
            shorten_days=days,
        ),
        reasoning=reasoning,
        confidence_score=_phase_confidence(analysis, compliance, strength),
        priority=4,
        expires_at=days_expiry(today, config.phase_expiry_days),
        evidence_summary={
            "phase_progress": {
                "current": progress,
                "expected": analysis.percent_complete,
                "status": analysis.status.value,
            },
            "compliance": compliance_evidence(compliance),
            "strength_progress": strength_evidence(strength),
        },
        projected_impact={
            "new_end_date": new_end.isoformat(),
            "days_saved": days,
            "benefit": "Earlier progression to next phase while maintaining gains",
        },
    )


def evaluate_phase(
    user_id: str,
    plan_id: str,
    phases: list[Phase],
    today: date,
    load: LoadMetrics,
    readiness: ReadinessSummary,
    compliance: ComplianceSummary,
    strength: StrengthSummary,
    config: EvaluatorSettings | None = None,
) -> tuple[PhaseAnalysis, list[RecommendationDraft]]:
    """Analyze the current phase and build at most one recommendation.

    Returns:
        (analysis, drafts). Without a current phase the analysis is empty and
        drafts is empty. Precedence is insert > extend > shorten.
    """
    config = config or EvaluatorSettings()
    phase = find_current_phase(phases, today)
    analysis = analyze_phase(phase, today, load, readiness, compliance, strength, config)
    if phase is None:
        return analysis, []

    if analysis.should_insert_recovery:
        draft = _insert_draft(user_id, plan_id, phase, analysis, today, load, readiness, config)
    elif analysis.should_extend and analysis.adjustment_days > 0:
        draft = _extension_draft(user_id, plan_id, phase, analysis, today, load, compliance, strength, config)
    elif analysis.should_shorten and analysis.adjustment_days > 0:
        draft = _shorten_draft(user_id, plan_id, phase, analysis, today, compliance, strength, config)
    else:
        return analysis, []
    return analysis, [draft]


def build_phase_timeline(phases: list[Phase], today: date, analysis: PhaseAnalysis | None = None) -> list[PhaseTimelineEntry]:
    """Completed / current / upcoming view of the plan's phases.

    The current phase's projected end date comes from the analysis when one
    is supplied for it.
    """
    entries: list[PhaseTimelineEntry] = []
    for phase in sorted(phases, key=lambda p: p.start_date):
        projected = phase.end_date
        if phase.end_date < today:
            status: Literal["completed", "current", "upcoming"] = "completed"
            progress = 100.0
        elif phase.start_date <= today:
            status = "current"
            if analysis is not None and analysis.phase_id == phase.id:
                progress = analysis.percent_complete
                projected = analysis.projected_end_date or phase.end_date
            else:
                total = max(1, (phase.end_date - phase.start_date).days)
                progress = round((today - phase.start_date).days / total * 100, 1)
        else:
            status = "upcoming"
            progress = 0.0

        entries.append(
            PhaseTimelineEntry(
                id=phase.id,
                name=phase.name,
                type=phase.type,
                start_date=phase.start_date,
                end_date=phase.end_date,
                original_end_date=phase.original_end_date,
                projected_end_date=projected,
                status=status,
                progress_percent=progress,
            )
        )
    return entries


def _shift(phase: Phase, days: int) -> Phase:
    return phase.model_copy(
        update={
            "start_date": phase.start_date + timedelta(days=days),
            "end_date": phase.end_date + timedelta(days=days),
        }
    )


def _with_new_end(phase: Phase, new_end: date, kind: str, today: date, recommendation_id: str | None) -> Phase:
    entry = AdaptationEntry(
        date=today,
        type=kind,
        original_end_date=phase.end_date,
        new_end_date=new_end,
        recommendation_id=recommendation_id,
    )
    return phase.model_copy(
        update={
            "end_date": new_end,
            "original_end_date": phase.original_end_date or phase.end_date,
            "adaptation_history": [*phase.adaptation_history, entry],
        }
    )


def apply_phase_adjustment(
    phases: list[Phase],
    target_phase_id: str,
    changes: ProposedChanges,
    today: date,
    recommendation_id: str | None = None,
) -> list[Phase]:
    """Apply an accepted phase change and return the updated phase list.

    The target phase's original_end_date is set from its end date on the
    first adjustment and never overwritten afterwards. Phases that start
    after the target shift by the same number of days so the plan stays
    contiguous; an inserted recovery phase shifts them by its duration.

    Raises:
        PlanAdjustmentError: When the target phase does not exist or the
            change is not a phase-scope change
    """
    ordered = sorted(phases, key=lambda p: p.start_date)
    target = next((p for p in ordered if p.id == target_phase_id), None)
    if target is None:
        raise PlanAdjustmentError(f"Phase {target_phase_id} not found in plan")

    if isinstance(changes, PhaseExtensionChanges | PhaseShortenChanges):
        new_end = changes.proposed_end_date
        if new_end < target.start_date:
            raise PlanAdjustmentError(f"Proposed end date {new_end} is before phase start {target.start_date}")
        delta = (new_end - target.end_date).days
        updated: list[Phase] = []
        for phase in ordered:
            if phase.id == target.id:
                updated.append(_with_new_end(phase, new_end, changes.kind, today, recommendation_id))
            elif phase.start_date > target.end_date:
                updated.append(_shift(phase, delta))
            else:
                updated.append(phase)
        logger.info(
            "Phase end date adjusted",
            phase_id=target.id,
            kind=changes.kind,
            new_end_date=new_end.isoformat(),
            shifted_phases=sum(1 for p in ordered if p.start_date > target.end_date),
        )
        return updated

    if isinstance(changes, PhaseInsertChanges):
        inserted = Phase(
            id=str(uuid.uuid4()),
            plan_id=target.plan_id,
            name="Recovery",
            type=changes.phase_type,
            order_index=target.order_index + 1,
            start_date=changes.start_date,
            end_date=changes.end_date,
            adaptation_history=[
                AdaptationEntry(date=today, type=changes.kind, recommendation_id=recommendation_id)
            ],
        )
        updated = []
        for phase in ordered:
            if phase.start_date >= changes.start_date and phase.id != target.id:
                shifted = _shift(phase, changes.duration_days)
                updated.append(shifted.model_copy(update={"order_index": phase.order_index + 1}))
            else:
                updated.append(phase)
        updated.append(inserted)
        logger.info(
            "Recovery phase inserted",
            after_phase_id=target.id,
            start_date=changes.start_date.isoformat(),
            duration_days=changes.duration_days,
        )
        return sorted(updated, key=lambda p: p.start_date)

    raise PlanAdjustmentError(f"Change kind '{changes.kind}' is not a phase adjustment")
