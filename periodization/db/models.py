from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationRecord(Base):
    """Adaptation recommendation produced by an evaluation.

    Stores:
    - Identity: plan_id, target_id (phase or weekly target id), kind
    - Payload: trigger_data, proposed_changes (tagged by kind), reasoning,
      evidence_summary, projected_impact
    - Ranking: confidence_score (0-1), priority (1 = most urgent)
    - Lifecycle: status, expires_at, responded_at, user_notes, modified_changes

    At most one pending row per (plan_id, target_id, kind), enforced by a
    partial unique index.
    """

    __tablename__ = "adaptation_recommendations"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    plan_id: Mapped[str] = mapped_column(String, nullable=False)
    target_id: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    scope: Mapped[str] = mapped_column(String, nullable=False)

    trigger_type: Mapped[str] = mapped_column(String, nullable=False)
    trigger_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    proposed_changes: Mapped[dict] = mapped_column(JSON, nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False)
    evidence_summary: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    projected_impact: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    user_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    modified_changes: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_adaptation_recommendations_plan_status", "plan_id", "status"),
        Index(
            "uq_adaptation_recommendations_pending",
            "plan_id",
            "target_id",
            "kind",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )


class DeloadTriggerRecord(Base):
    """Deload trigger raised by the detector or created manually.

    Stores the triggering signal, severity and the prescribed deload
    (type, duration, reductions). An accepted trigger anchors "days since
    last deload" for later evaluations.
    """

    __tablename__ = "deload_triggers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    trigger_type: Mapped[str] = mapped_column(String, nullable=False)
    trigger_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    severity: Mapped[str] = mapped_column(String, nullable=False)
    recommended_type: Mapped[str] = mapped_column(String, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    volume_reduction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    intensity_reduction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    user_response: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    triggered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_deload_triggers_user_response", "user_id", "user_response"),
        Index(
            "uq_deload_triggers_pending",
            "user_id",
            unique=True,
            sqlite_where=text("user_response = 'pending'"),
            postgresql_where=text("user_response = 'pending'"),
        ),
    )


class AdaptationEvaluationRecord(Base):
    """Audit row written once per evaluation.

    metrics_snapshot holds the JSON form of the week/phase analyses and the
    load/readiness/compliance inputs the decisions were made from.
    """

    __tablename__ = "adaptation_evaluations"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    plan_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    evaluated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    trigger: Mapped[str] = mapped_column(String, nullable=False, default="on_demand")
    metrics_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    recommendation_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    deload_trigger_id: Mapped[str | None] = mapped_column(String, nullable=True)
