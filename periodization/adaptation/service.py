"""Adaptation service: evaluate a plan and manage the recommendation lifecycle.

Evaluation runs in three stages:

1. Collect: parallel read-only fetches from the TrainingDataSource.
2. Score: synchronous, pure computation of load, readiness, compliance,
   volume and strength state, then week/phase drafts.
3. Persist: under the per-plan lock and inside one transaction, expire
   stale rows, decide and store the deload trigger, deduplicate and store
   the drafts, and write the evaluation audit row.

A failed read aborts before anything is written. A unique-index conflict
from a concurrent writer in another process rolls the transaction back and
the persist stage is retried once, at which point deduplication finds the
winner's rows.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from periodization.adaptation.deload import DeloadDecision, detect_deload, manual_decision
from periodization.adaptation.errors import InvalidResponseError, PlanAdjustmentError, RecommendationStateError
from periodization.adaptation.metrics_collector import CollectedData, TrainingDataSource, collect_metrics
from periodization.adaptation.phase_evaluator import (
    PhaseAnalysis,
    PhaseTimelineEntry,
    build_phase_timeline,
    evaluate_phase,
)
from periodization.adaptation.recommendation_engine import rank_drafts
from periodization.adaptation.store import (
    DeloadTriggerStore,
    EvaluationStore,
    RecommendationStore,
    as_utc,
    plan_lock,
    to_deload_trigger,
    to_recommendation,
)
from periodization.adaptation.week_evaluator import WeekAnalysis, evaluate_week
from periodization.analysis.plateau import plateaued_exercises, summarize_strength
from periodization.analysis.readiness import compute_baseline, summarize_readiness, summarize_recovery_quality
from periodization.analysis.volume_landmarks import calculate_training_age, evaluate_volume, muscles_over_mrv
from periodization.config.settings import Settings, settings
from periodization.db.session import get_session
from periodization.metrics.compliance import compute_compliance, covers
from periodization.metrics.training_load import compute_load_metrics
from periodization.models.enums import DeloadType, RecommendationStatus, UserResponse
from periodization.models.metrics import (
    ComplianceSummary,
    LoadMetrics,
    MuscleVolumeStatus,
    ReadinessSummary,
    RecoveryQuality,
    StrengthSummary,
    TrainingAge,
)
from periodization.models.recommendation import (
    DeloadTrigger,
    ProposedChanges,
    Recommendation,
    RecommendationDraft,
    parse_proposed_changes,
)
from periodization.models.records import UpcomingEvent

PERSIST_ATTEMPTS = 2

_RESPONSE_STATUS = {
    UserResponse.ACCEPTED: RecommendationStatus.ACCEPTED,
    UserResponse.MODIFIED: RecommendationStatus.MODIFIED,
    UserResponse.DISMISSED: RecommendationStatus.DISMISSED,
}


class PlanAdjustmentSink(Protocol):
    """Collaborator that applies accepted changes to the stored plan."""

    def apply(self, recommendation: Recommendation, changes: ProposedChanges) -> None: ...


@dataclass(frozen=True)
class EvaluationAnalysis:
    """Everything the decisions of one evaluation were derived from."""

    today: date
    load: LoadMetrics
    readiness: ReadinessSummary
    recovery: RecoveryQuality
    compliance: ComplianceSummary
    training_age: TrainingAge
    volume: tuple[MuscleVolumeStatus, ...]
    strength: StrengthSummary
    week: WeekAnalysis
    phase: PhaseAnalysis
    training_start_date: date | None = None
    upcoming_events: tuple[UpcomingEvent, ...] = ()


@dataclass(frozen=True)
class EvaluationResult:
    analysis: EvaluationAnalysis
    recommendations: list[Recommendation] = field(default_factory=list)
    deload: DeloadTrigger | None = None
    deload_decision: DeloadDecision | None = None
    evaluation_id: str | None = None

    @property
    def has_recommendation(self) -> bool:
        return bool(self.recommendations) or self.deload is not None


@dataclass(frozen=True)
class _Persisted:
    recommendations: list[Recommendation]
    deload: DeloadTrigger | None
    decision: DeloadDecision
    evaluation_id: str


def _utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _parse_response(response: UserResponse | str) -> UserResponse:
    try:
        parsed = UserResponse(response)
    except ValueError as e:
        raise InvalidResponseError(f"response must be one of: accepted, modified, dismissed (got {response!r})") from e
    if parsed == UserResponse.PENDING:
        raise InvalidResponseError("response must be one of: accepted, modified, dismissed (got 'pending')")
    return parsed


class AdaptationService:
    """Entry point used by the API layer and scheduled jobs."""

    def __init__(
        self,
        data_source: TrainingDataSource,
        adjustment_sink: PlanAdjustmentSink | None = None,
        config: Settings | None = None,
    ):
        self.data_source = data_source
        self.adjustment_sink = adjustment_sink
        self.config = config or settings

    # -----------------------------
    # Evaluation
    # -----------------------------
    async def evaluate(self, user_id: str, plan_id: str, now: datetime, trigger: str = "on_demand") -> EvaluationResult:
        """Evaluate a plan as of `now` and persist the resulting recommendations.

        Args:
            user_id: Athlete owning the plan
            plan_id: Plan to evaluate
            now: Evaluation instant; its UTC date is "today" for every rule
            trigger: Audit label for what started the evaluation

        Returns:
            EvaluationResult with the analysis, the pending recommendations
            (new or pre-existing duplicates) and the pending deload trigger.

        Raises:
            MetricsCollectionError: If any time-series read fails; nothing is persisted
        """
        now = _utc(now)
        today = now.date()
        logger.info(f"Starting adaptation evaluation: user_id={user_id}, plan_id={plan_id}, today={today}")

        data = await collect_metrics(
            self.data_source,
            user_id,
            plan_id,
            today,
            history_days=self.config.load.window_days,
            baseline_days=self.config.readiness.baseline_window_days,
            timeout_s=self.config.collector_timeout_s,
        )

        analysis, drafts = self._score(user_id, plan_id, today, data)
        persisted = await asyncio.to_thread(self._persist_with_retry, user_id, plan_id, now, analysis, drafts, trigger)

        result = EvaluationResult(
            analysis=analysis,
            recommendations=persisted.recommendations,
            deload=persisted.deload,
            deload_decision=persisted.decision,
            evaluation_id=persisted.evaluation_id,
        )
        logger.info(
            f"Adaptation evaluation complete: plan_id={plan_id}, recommendations={len(result.recommendations)}, "
            f"deload={'yes' if result.deload else 'no'}"
        )
        return result

    def _score(
        self, user_id: str, plan_id: str, today: date, data: CollectedData
    ) -> tuple[EvaluationAnalysis, list[RecommendationDraft]]:
        config = self.config

        load = compute_load_metrics(data.training, today, config.load)
        baseline = compute_baseline(data.readiness, today, config.readiness)
        readiness = summarize_readiness(data.readiness, today, baseline, config.readiness, load.tsb_by_date())
        recovery = summarize_recovery_quality(data.readiness, today)
        compliance = compute_compliance(data.weekly_targets, data.training, today, config.evaluator)
        training_age = calculate_training_age(data.training_start_date, today, config.volume)
        volume = evaluate_volume(data.muscle_volume, training_age.volume_multiplier, config.volume)
        strength = summarize_strength(data.strength, config.deload)

        target = next((t for t in data.weekly_targets if covers(t, today)), None)
        week, week_drafts = evaluate_week(user_id, plan_id, target, load, readiness, compliance, config.evaluator)
        phase, phase_drafts = evaluate_phase(
            user_id, plan_id, data.phases, today, load, readiness, compliance, strength, config.evaluator
        )

        analysis = EvaluationAnalysis(
            today=today,
            load=load,
            readiness=readiness,
            recovery=recovery,
            compliance=compliance,
            training_age=training_age,
            volume=tuple(volume),
            strength=strength,
            week=week,
            phase=phase,
            training_start_date=data.training_start_date,
            upcoming_events=tuple(sorted(data.upcoming_events, key=lambda e: e.event_date)),
        )
        return analysis, rank_drafts(week_drafts + phase_drafts)

    def _days_since_last_deload(self, store: DeloadTriggerStore, user_id: str, today: date, analysis: EvaluationAnalysis) -> int | None:
        last = store.last_accepted_at(user_id)
        if last is not None:
            return (today - last.date()).days
        if analysis.training_start_date is not None:
            return (today - analysis.training_start_date).days
        return None

    def _decide_deload(self, days_since: int | None, analysis: EvaluationAnalysis) -> DeloadDecision:
        deload_config = self.config.deload
        return detect_deload(
            tsb=analysis.load.current.tsb if analysis.load.has_data else None,
            muscles_over_mrv=muscles_over_mrv(list(analysis.volume)),
            plateaued=plateaued_exercises(analysis.strength, deload_config.plateau_weeks),
            recent_readiness=list(analysis.readiness.recent_scores),
            days_since_last_deload=days_since,
            config=deload_config,
        )

    def _persist(
        self,
        user_id: str,
        plan_id: str,
        now: datetime,
        analysis: EvaluationAnalysis,
        drafts: list[RecommendationDraft],
        trigger: str,
    ) -> _Persisted:
        with plan_lock(plan_id), get_session() as session:
            recommendations = RecommendationStore(session)
            deloads = DeloadTriggerStore(session)

            recommendations.expire_stale(now, user_id=user_id)

            decision = self._decide_deload(self._days_since_last_deload(deloads, user_id, analysis.today, analysis), analysis)
            if decision.should_deload:
                deload_record, _ = deloads.create_if_none_pending(user_id, decision, now)
            else:
                deload_record = deloads.get_pending(user_id)

            ids: list[str] = []
            for draft in drafts:
                rec_id, _ = recommendations.save_draft(draft, now)
                if rec_id not in ids:
                    ids.append(rec_id)

            audit = EvaluationStore(session).record(
                user_id=user_id,
                plan_id=plan_id,
                evaluated_at=now,
                metrics_snapshot={
                    "load": {
                        "current": analysis.load.current,
                        "ctl_trend": analysis.load.ctl_trend,
                        "atl_trend": analysis.load.atl_trend,
                        "acwr_band": analysis.load.acwr_band,
                        "tsb_trend": analysis.load.tsb_trend,
                        "tsb_window_trend": analysis.load.tsb_window_trend,
                        "strain_risk": analysis.load.strain_risk,
                    },
                    "readiness": analysis.readiness,
                    "compliance": analysis.compliance,
                    "week": analysis.week,
                    "phase": analysis.phase,
                    "deload": decision,
                },
                recommendation_ids=ids,
                deload_trigger_id=deload_record.id if deload_record is not None else None,
                trigger=trigger,
            )

            return _Persisted(
                recommendations=[to_recommendation(r) for r in recommendations.list_by_ids(ids)],
                deload=to_deload_trigger(deload_record) if deload_record is not None else None,
                decision=decision,
                evaluation_id=audit.id,
            )

    def _persist_with_retry(self, *args: Any) -> _Persisted:
        for attempt in range(1, PERSIST_ATTEMPTS + 1):
            try:
                return self._persist(*args)
            except IntegrityError as e:
                if attempt == PERSIST_ATTEMPTS:
                    raise
                logger.warning(f"Concurrent write detected while persisting evaluation, retrying: {e.orig}")
        raise AssertionError("unreachable")

    # -----------------------------
    # Recommendation lifecycle
    # -----------------------------
    def respond_to_recommendation(
        self,
        user_id: str,
        recommendation_id: str,
        response: UserResponse | str,
        now: datetime,
        notes: str | None = None,
        modified_changes: dict[str, Any] | None = None,
    ) -> Recommendation:
        """Accept, modify or dismiss a pending recommendation.

        Accepted and modified recommendations are forwarded to the plan
        adjustment collaborator inside the same transaction; if applying
        fails the recommendation stays pending.

        Raises:
            InvalidResponseError: Unknown response, or modified without valid changes
            RecommendationNotFoundError: No such recommendation for the user
            RecommendationStateError: Recommendation is not pending or has expired
            PlanAdjustmentError: The accepted change could not be applied
        """
        now = _utc(now)
        parsed = _parse_response(response)
        expired = False

        with get_session() as session:
            store = RecommendationStore(session)
            record = store.get(recommendation_id, user_id)

            if record.status == RecommendationStatus.PENDING.value and as_utc(record.expires_at) <= now:
                record.status = RecommendationStatus.EXPIRED.value
                expired = True
            else:
                if record.status != RecommendationStatus.PENDING.value:
                    raise RecommendationStateError(f"Cannot respond to recommendation with status: {record.status}")
                changes = self._changes_for_response(record.kind, parsed, modified_changes)
                store.mark_response(
                    record,
                    _RESPONSE_STATUS[parsed],
                    now,
                    notes=notes,
                    modified_changes=changes.model_dump(mode="json") if parsed == UserResponse.MODIFIED else None,
                )
                recommendation = to_recommendation(record)
                if parsed != UserResponse.DISMISSED:
                    self._apply(recommendation, changes)

        if expired:
            logger.info(f"Recommendation {recommendation_id} expired before response")
            raise RecommendationStateError(f"Recommendation {recommendation_id} has expired")

        logger.info(f"Recommendation {recommendation_id} marked {recommendation.status.value}")
        return recommendation

    def _changes_for_response(
        self, kind: str, response: UserResponse, modified_changes: dict[str, Any] | None
    ) -> ProposedChanges | None:
        if response != UserResponse.MODIFIED:
            return None
        if not modified_changes:
            raise InvalidResponseError("modified_changes required when response is modified")
        payload = {"kind": kind, **modified_changes}
        try:
            changes = parse_proposed_changes(payload)
        except ValidationError as e:
            raise InvalidResponseError(f"Invalid modified_changes for {kind}: {e}") from e
        if changes.kind != kind:
            raise InvalidResponseError(f"modified_changes kind {changes.kind} does not match recommendation kind {kind}")
        return changes

    def _apply(self, recommendation: Recommendation, changes: ProposedChanges | None) -> None:
        if self.adjustment_sink is None:
            logger.debug(f"No plan adjustment sink configured, recommendation {recommendation.id} recorded only")
            return
        try:
            self.adjustment_sink.apply(recommendation, changes or recommendation.proposed_changes)
        except PlanAdjustmentError:
            raise
        except Exception as e:
            raise PlanAdjustmentError(f"Failed to apply recommendation {recommendation.id}: {e}") from e

    def get_pending_recommendations(self, user_id: str, now: datetime, plan_id: str | None = None) -> list[Recommendation]:
        with get_session() as session:
            records = RecommendationStore(session).list_pending(user_id, plan_id, _utc(now))
            return [to_recommendation(r) for r in records]

    def expire_stale_recommendations(self, now: datetime, user_id: str | None = None) -> int:
        with get_session() as session:
            return RecommendationStore(session).expire_stale(_utc(now), user_id=user_id)

    # -----------------------------
    # Deload lifecycle
    # -----------------------------
    def get_pending_deload_trigger(self, user_id: str) -> DeloadTrigger | None:
        with get_session() as session:
            record = DeloadTriggerStore(session).get_pending(user_id)
            return to_deload_trigger(record) if record is not None else None

    def respond_to_deload_trigger(
        self,
        user_id: str,
        trigger_id: str,
        response: UserResponse | str,
        now: datetime,
        notes: str | None = None,
    ) -> DeloadTrigger:
        """Record the user's answer; accepted triggers anchor "days since last deload"."""
        parsed = _parse_response(response)
        with get_session() as session:
            store = DeloadTriggerStore(session)
            record = store.respond(store.get(trigger_id, user_id), parsed, _utc(now), notes)
            trigger = to_deload_trigger(record)
        logger.info(f"Deload trigger {trigger_id} marked {parsed.value}")
        return trigger

    def create_manual_deload(
        self,
        user_id: str,
        deload_type: DeloadType | str,
        now: datetime,
        duration_days: int | None = None,
        reason: str | None = None,
    ) -> DeloadTrigger:
        try:
            parsed_type = DeloadType(deload_type)
        except ValueError as e:
            raise InvalidResponseError(f"Unknown deload type: {deload_type!r}") from e
        decision = manual_decision(parsed_type, duration_days, reason, self.config.deload)
        with get_session() as session:
            record = DeloadTriggerStore(session).create_manual(user_id, decision, _utc(now))
            return to_deload_trigger(record)

    # -----------------------------
    # Phase timeline
    # -----------------------------
    async def get_phase_timeline(self, user_id: str, plan_id: str, now: datetime) -> list[PhaseTimelineEntry]:
        """Completed/current/upcoming phases with the current phase's projected end date."""
        today = _utc(now).date()
        data = await collect_metrics(
            self.data_source,
            user_id,
            plan_id,
            today,
            history_days=self.config.load.window_days,
            baseline_days=self.config.readiness.baseline_window_days,
            timeout_s=self.config.collector_timeout_s,
        )
        analysis, _ = self._score(user_id, plan_id, today, data)
        return build_phase_timeline(data.phases, today, analysis.phase)
