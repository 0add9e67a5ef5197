"""Persistence of recommendations, deload triggers and evaluation audits.

All stores operate on a caller-supplied SQLAlchemy session so that one
evaluation is written in a single transaction. Deduplication relies on two
layers: callers hold plan_lock(plan_id) around the read-check-insert, and
the partial unique index on pending rows rejects a duplicate written by
another process (surfacing as IntegrityError on flush).
"""

from __future__ import annotations

import threading
import weakref
from datetime import datetime, timezone
from typing import Any

from loguru import logger
from pydantic_core import to_jsonable_python
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from periodization.adaptation.deload import DeloadDecision
from periodization.adaptation.errors import (
    DeloadTriggerNotFoundError,
    RecommendationNotFoundError,
    RecommendationStateError,
)
from periodization.db.models import AdaptationEvaluationRecord, DeloadTriggerRecord, RecommendationRecord
from periodization.models.enums import DeloadSignal, RecommendationStatus, UserResponse
from periodization.models.recommendation import DeloadTrigger, Recommendation, RecommendationDraft

_plan_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
_plan_locks_guard = threading.Lock()


def plan_lock(plan_id: str) -> threading.Lock:
    """Per-plan serialization point for the recommendation write path.

    Entries are dropped once no caller holds a reference to the lock.
    """
    with _plan_locks_guard:
        lock = _plan_locks.get(plan_id)
        if lock is None:
            lock = threading.Lock()
            _plan_locks[plan_id] = lock
        return lock


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_recommendation(record: RecommendationRecord) -> Recommendation:
    return Recommendation(
        id=record.id,
        user_id=record.user_id,
        plan_id=record.plan_id,
        scope=record.scope,
        target_id=record.target_id,
        trigger_type=record.trigger_type,
        trigger_data=record.trigger_data,
        proposed_changes=record.proposed_changes,
        reasoning=record.reasoning,
        confidence_score=record.confidence_score,
        priority=record.priority,
        expires_at=as_utc(record.expires_at),
        evidence_summary=record.evidence_summary or {},
        projected_impact=record.projected_impact or {},
        status=record.status,
        created_at=as_utc(record.created_at),
        user_notes=record.user_notes,
        modified_changes=record.modified_changes,
        responded_at=as_utc(record.responded_at),
    )


def to_deload_trigger(record: DeloadTriggerRecord) -> DeloadTrigger:
    return DeloadTrigger(
        id=record.id,
        user_id=record.user_id,
        trigger_type=record.trigger_type,
        trigger_data=record.trigger_data or {},
        severity=record.severity,
        recommended_type=record.recommended_type,
        duration_days=record.duration_days,
        volume_reduction=record.volume_reduction,
        intensity_reduction=record.intensity_reduction,
        user_response=record.user_response,
        triggered_at=as_utc(record.triggered_at),
        responded_at=as_utc(record.responded_at),
        response_notes=record.response_notes,
    )


class RecommendationStore:
    def __init__(self, session: Session):
        self.session = session

    def find_pending(self, plan_id: str, target_id: str, kind: str) -> RecommendationRecord | None:
        stmt = select(RecommendationRecord).where(
            RecommendationRecord.plan_id == plan_id,
            RecommendationRecord.target_id == target_id,
            RecommendationRecord.kind == kind,
            RecommendationRecord.status == RecommendationStatus.PENDING.value,
        )
        return self.session.execute(stmt).scalars().first()

    def save_draft(self, draft: RecommendationDraft, now: datetime) -> tuple[str, bool]:
        """Insert the draft unless a pending one exists for (plan, target, kind).

        Must be called while holding plan_lock(draft.plan_id).

        Returns:
            (recommendation_id, created). created is False when an existing
            pending recommendation was returned instead.
        """
        existing = self.find_pending(draft.plan_id, draft.target_id, draft.kind.value)
        if existing is not None:
            logger.debug(
                "Pending recommendation already exists, skipping insert",
                recommendation_id=existing.id,
                plan_id=draft.plan_id,
                target_id=draft.target_id,
                kind=draft.kind.value,
            )
            return existing.id, False

        record = RecommendationRecord(
            user_id=draft.user_id,
            plan_id=draft.plan_id,
            target_id=draft.target_id,
            kind=draft.kind.value,
            scope=draft.scope.value,
            trigger_type=draft.trigger_type.value,
            trigger_data=draft.trigger_data.model_dump(mode="json"),
            proposed_changes=draft.proposed_changes.model_dump(mode="json"),
            reasoning=draft.reasoning,
            evidence_summary=to_jsonable_python(draft.evidence_summary),
            projected_impact=to_jsonable_python(draft.projected_impact),
            confidence_score=draft.confidence_score,
            priority=draft.priority,
            status=RecommendationStatus.PENDING.value,
            expires_at=draft.expires_at,
            created_at=now,
        )
        self.session.add(record)
        self.session.flush()
        logger.info(
            "Recommendation created",
            recommendation_id=record.id,
            plan_id=draft.plan_id,
            kind=draft.kind.value,
            priority=draft.priority,
            confidence=draft.confidence_score,
        )
        return record.id, True

    def get(self, recommendation_id: str, user_id: str | None = None) -> RecommendationRecord:
        record = self.session.get(RecommendationRecord, recommendation_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            raise RecommendationNotFoundError(f"Recommendation {recommendation_id} not found")
        return record

    def list_by_ids(self, ids: list[str]) -> list[RecommendationRecord]:
        if not ids:
            return []
        stmt = select(RecommendationRecord).where(RecommendationRecord.id.in_(ids))
        by_id = {r.id: r for r in self.session.execute(stmt).scalars()}
        return [by_id[i] for i in ids if i in by_id]

    def list_pending(self, user_id: str, plan_id: str | None, now: datetime) -> list[RecommendationRecord]:
        """Pending, unexpired recommendations ordered by priority then confidence."""
        stmt = select(RecommendationRecord).where(
            RecommendationRecord.user_id == user_id,
            RecommendationRecord.status == RecommendationStatus.PENDING.value,
            RecommendationRecord.expires_at > now,
        )
        if plan_id is not None:
            stmt = stmt.where(RecommendationRecord.plan_id == plan_id)
        stmt = stmt.order_by(RecommendationRecord.priority.asc(), RecommendationRecord.confidence_score.desc())
        return list(self.session.execute(stmt).scalars())

    def expire_stale(self, now: datetime, user_id: str | None = None) -> int:
        """Mark pending rows whose expires_at has passed as expired."""
        stmt = (
            update(RecommendationRecord)
            .where(
                RecommendationRecord.status == RecommendationStatus.PENDING.value,
                RecommendationRecord.expires_at <= now,
            )
            .values(status=RecommendationStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        if user_id is not None:
            stmt = stmt.where(RecommendationRecord.user_id == user_id)
        result = self.session.execute(stmt)
        count = result.rowcount or 0
        if count:
            logger.info("Expired stale recommendations", count=count, user_id=user_id)
        return count

    def mark_response(
        self,
        record: RecommendationRecord,
        status: RecommendationStatus,
        now: datetime,
        notes: str | None = None,
        modified_changes: dict[str, Any] | None = None,
    ) -> RecommendationRecord:
        if record.status != RecommendationStatus.PENDING.value:
            raise RecommendationStateError(f"Cannot respond to recommendation with status: {record.status}")
        record.status = status.value
        record.user_notes = notes
        record.modified_changes = modified_changes
        record.responded_at = now
        self.session.flush()
        return record


class DeloadTriggerStore:
    def __init__(self, session: Session):
        self.session = session

    def get_pending(self, user_id: str) -> DeloadTriggerRecord | None:
        """Most recent pending trigger for the user."""
        stmt = (
            select(DeloadTriggerRecord)
            .where(
                DeloadTriggerRecord.user_id == user_id,
                DeloadTriggerRecord.user_response == UserResponse.PENDING.value,
            )
            .order_by(DeloadTriggerRecord.triggered_at.desc())
        )
        return self.session.execute(stmt).scalars().first()

    def last_accepted_at(self, user_id: str) -> datetime | None:
        """When the most recent accepted (or modified) deload was triggered."""
        stmt = (
            select(DeloadTriggerRecord.triggered_at)
            .where(
                DeloadTriggerRecord.user_id == user_id,
                DeloadTriggerRecord.user_response.in_([UserResponse.ACCEPTED.value, UserResponse.MODIFIED.value]),
            )
            .order_by(DeloadTriggerRecord.triggered_at.desc())
        )
        return as_utc(self.session.execute(stmt).scalars().first())

    def _new_record(self, user_id: str, decision: DeloadDecision, now: datetime, response: UserResponse) -> DeloadTriggerRecord:
        signal = decision.primary_signal or DeloadSignal.MANUAL
        return DeloadTriggerRecord(
            user_id=user_id,
            trigger_type=signal.value,
            trigger_data=decision.trigger_data(),
            severity=decision.severity.value,
            recommended_type=decision.deload_type.value,
            duration_days=decision.duration_days,
            volume_reduction=decision.volume_reduction,
            intensity_reduction=decision.intensity_reduction,
            user_response=response.value,
            triggered_at=now,
            responded_at=now if response != UserResponse.PENDING else None,
        )

    def create_if_none_pending(self, user_id: str, decision: DeloadDecision, now: datetime) -> tuple[DeloadTriggerRecord, bool]:
        """Create a pending trigger unless one is already pending.

        Returns:
            (trigger, created). When a trigger is pending it is returned
            unchanged with created False.
        """
        pending = self.get_pending(user_id)
        if pending is not None:
            logger.debug("Deload trigger already pending", trigger_id=pending.id, user_id=user_id)
            return pending, False

        record = self._new_record(user_id, decision, now, UserResponse.PENDING)
        self.session.add(record)
        self.session.flush()
        logger.info(
            "Deload trigger created",
            trigger_id=record.id,
            user_id=user_id,
            severity=record.severity,
            deload_type=record.recommended_type,
        )
        return record, True

    def create_manual(self, user_id: str, decision: DeloadDecision, now: datetime) -> DeloadTriggerRecord:
        """Manual deloads are auto-accepted."""
        record = self._new_record(user_id, decision, now, UserResponse.ACCEPTED)
        self.session.add(record)
        self.session.flush()
        logger.info("Manual deload created", trigger_id=record.id, user_id=user_id, deload_type=record.recommended_type)
        return record

    def get(self, trigger_id: str, user_id: str | None = None) -> DeloadTriggerRecord:
        record = self.session.get(DeloadTriggerRecord, trigger_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            raise DeloadTriggerNotFoundError(f"Deload trigger {trigger_id} not found")
        return record

    def respond(
        self,
        record: DeloadTriggerRecord,
        response: UserResponse,
        now: datetime,
        notes: str | None = None,
    ) -> DeloadTriggerRecord:
        if record.user_response != UserResponse.PENDING.value:
            raise RecommendationStateError(f"Cannot respond to deload trigger with response: {record.user_response}")
        record.user_response = response.value
        record.responded_at = now
        record.response_notes = notes
        self.session.flush()
        return record


class EvaluationStore:
    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        user_id: str,
        plan_id: str,
        evaluated_at: datetime,
        metrics_snapshot: dict[str, Any],
        recommendation_ids: list[str],
        deload_trigger_id: str | None,
        trigger: str = "on_demand",
    ) -> AdaptationEvaluationRecord:
        record = AdaptationEvaluationRecord(
            user_id=user_id,
            plan_id=plan_id,
            evaluated_at=evaluated_at,
            trigger=trigger,
            metrics_snapshot=to_jsonable_python(metrics_snapshot),
            recommendation_ids=list(recommendation_ids),
            deload_trigger_id=deload_trigger_id,
        )
        self.session.add(record)
        self.session.flush()
        return record
