"""Parallel read of every time series an evaluation needs.

The data source is a collaborator (workout log, readiness check-ins, plan
authoring, strength tracking) exposed through the TrainingDataSource
protocol. Its methods are synchronous and read-only; the collector runs
them concurrently in worker threads and fails the whole collection if any
single read fails.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Protocol

from loguru import logger

from periodization.adaptation.errors import MetricsCollectionError
from periodization.models.records import (
    DailyTrainingRecord,
    ExerciseProgress,
    MuscleVolumeInput,
    Phase,
    ReadinessAssessment,
    UpcomingEvent,
    WeeklyTarget,
)

EVENT_HORIZON_DAYS = 30


class TrainingDataSource(Protocol):
    """Read-only collaborator interface consumed by the engine."""

    def get_daily_training(self, user_id: str, start: date, end: date) -> list[DailyTrainingRecord]: ...

    def get_readiness(self, user_id: str, start: date, end: date) -> list[ReadinessAssessment]: ...

    def get_weekly_targets(self, plan_id: str) -> list[WeeklyTarget]: ...

    def get_phases(self, plan_id: str) -> list[Phase]: ...

    def get_muscle_volume(self, user_id: str, week_start: date) -> list[MuscleVolumeInput]: ...

    def get_strength_progress(self, user_id: str, plan_id: str) -> list[ExerciseProgress]: ...

    def get_training_start_date(self, user_id: str) -> date | None: ...

    def get_upcoming_events(self, plan_id: str, start: date, end: date) -> list[UpcomingEvent]: ...


@dataclass(frozen=True)
class CollectedData:
    training: list[DailyTrainingRecord] = field(default_factory=list)
    readiness: list[ReadinessAssessment] = field(default_factory=list)
    weekly_targets: list[WeeklyTarget] = field(default_factory=list)
    phases: list[Phase] = field(default_factory=list)
    muscle_volume: list[MuscleVolumeInput] = field(default_factory=list)
    strength: list[ExerciseProgress] = field(default_factory=list)
    training_start_date: date | None = None
    upcoming_events: list[UpcomingEvent] = field(default_factory=list)


async def _read(source: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return await asyncio.to_thread(fn, *args)
    except Exception as e:
        logger.error(f"Time-series read failed: source={source}, error={e}")
        raise MetricsCollectionError(source, e) from e


async def collect_metrics(
    data_source: TrainingDataSource,
    user_id: str,
    plan_id: str,
    today: date,
    history_days: int,
    baseline_days: int,
    timeout_s: float,
) -> CollectedData:
    """Fetch all inputs of one evaluation concurrently.

    Args:
        data_source: Collaborator providing the time series
        user_id: Athlete being evaluated
        plan_id: Plan being evaluated
        today: Evaluation date
        history_days: Days of training history for the load model
        baseline_days: Days of readiness history for baselines and trends
        timeout_s: Upper bound for the whole fan-out

    Returns:
        CollectedData with every series populated

    Raises:
        MetricsCollectionError: If any read fails or the fan-out times out
    """
    training_start = today - timedelta(days=history_days)
    readiness_start = today - timedelta(days=baseline_days)
    week_start = today - timedelta(days=today.weekday())
    events_end = today + timedelta(days=EVENT_HORIZON_DAYS)

    reads = [
        _read("training", data_source.get_daily_training, user_id, training_start, today),
        _read("readiness", data_source.get_readiness, user_id, readiness_start, today),
        _read("weekly_targets", data_source.get_weekly_targets, plan_id),
        _read("phases", data_source.get_phases, plan_id),
        _read("muscle_volume", data_source.get_muscle_volume, user_id, week_start),
        _read("strength", data_source.get_strength_progress, user_id, plan_id),
        _read("training_start_date", data_source.get_training_start_date, user_id),
        _read("upcoming_events", data_source.get_upcoming_events, plan_id, today, events_end),
    ]

    try:
        results = await asyncio.wait_for(asyncio.gather(*reads), timeout=timeout_s)
    except TimeoutError as e:
        logger.error(f"Time-series collection timed out after {timeout_s}s for plan {plan_id}")
        raise MetricsCollectionError("timeout", e) from e

    training, readiness, targets, phases, volume, strength, start_date, events = results
    logger.debug(
        "Collected evaluation inputs",
        plan_id=plan_id,
        training_days=len(training),
        readiness_days=len(readiness),
        weekly_targets=len(targets),
        phases=len(phases),
        exercises=len(strength),
    )
    return CollectedData(
        training=list(training),
        readiness=list(readiness),
        weekly_targets=list(targets),
        phases=list(phases),
        muscle_volume=list(volume),
        strength=list(strength),
        training_start_date=start_date,
        upcoming_events=list(events),
    )
