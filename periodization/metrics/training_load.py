"""Training load metrics computation (CTL, ATL, TSB, ACWR, monotony, strain).

This module provides deterministic, idempotent computation of training load
metrics from daily training records. "Today" is always passed in by the
caller; nothing here reads the system clock.

Metrics:
- CTL (Chronic Training Load): 42-day exponentially weighted moving average
- ATL (Acute Training Load): 7-day exponentially weighted moving average
- TSB (Training Stress Balance): CTL - ATL
- ACWR (Acute:Chronic Workload Ratio): ATL / CTL, undefined when CTL is 0
- Monotony / Strain (Foster): variability-adjusted weekly load

Properties:
- Deterministic: Same input always produces same output
- Missing data handling: days without a record are rest days (load 0)
"""

from __future__ import annotations

import statistics
from datetime import date, timedelta

from periodization.analysis.trends import classify_slope, compare_windows
from periodization.config.settings import LoadSettings
from periodization.models.enums import AcwrBand, LoadTrend, StrainRisk
from periodization.models.metrics import LoadMetrics, LoadSnapshot
from periodization.models.records import DailyTrainingRecord

WEEK_DAYS = 7


def build_daily_series(
    records: list[DailyTrainingRecord],
    today: date,
    window_days: int,
    use_session_rpe: bool = False,
) -> list[tuple[date, float]]:
    """Build a contiguous daily load series ending at today.

    Args:
        records: Daily training records in any order; later duplicates for
                 the same date win
        today: Last day of the window (inclusive)
        window_days: Number of days in the window
        use_session_rpe: Use RPE x minutes instead of TSS as the daily load

    Returns:
        List of (date, load) tuples, one per day, oldest first
    """
    load_map: dict[date, float] = {}
    for record in records:
        load_map[record.date] = record.session_rpe_load if use_session_rpe else record.effective_tss

    start = today - timedelta(days=max(window_days, 1) - 1)
    series: list[tuple[date, float]] = []
    current = start
    while current <= today:
        series.append((current, load_map.get(current, 0.0)))
        current += timedelta(days=1)
    return series


def calculate_ewma(values: list[float], time_constant: float) -> list[float]:
    """Calculate the Banister exponentially weighted moving average.

    Formula:
        load[0] = 0 + (value[0] - 0) / tau
        load[t] = load[t-1] + (value[t] - load[t-1]) / tau

    The series is seeded at 0, so a step increase in daily load rises
    monotonically toward the new steady state without overshoot.
    """
    result: list[float] = []
    prev = 0.0
    for value in values:
        prev = prev + (value - prev) / time_constant
        result.append(prev)
    return result


def calculate_monotony(daily_loads: list[float]) -> float:
    """Mean / population standard deviation of the daily loads; 0 when stddev is 0."""
    if not daily_loads:
        return 0.0
    sd = statistics.pstdev(daily_loads)
    if sd == 0:
        return 0.0
    return statistics.fmean(daily_loads) / sd


def calculate_acwr(atl: float, ctl: float) -> float | None:
    if ctl == 0:
        return None
    return atl / ctl


def classify_acwr(acwr: float | None, config: LoadSettings) -> AcwrBand:
    """Band the ratio: optimal 0.8-1.3, high risk outside [0.5, 1.5], else caution."""
    if acwr is None:
        return AcwrBand.UNDEFINED
    if config.acwr_optimal_low <= acwr <= config.acwr_optimal_high:
        return AcwrBand.OPTIMAL
    if acwr < config.acwr_risk_low or acwr > config.acwr_risk_high:
        return AcwrBand.HIGH_RISK
    return AcwrBand.CAUTION


def classify_strain_risk(monotony: float, strain: float, acwr: float | None, config: LoadSettings) -> StrainRisk:
    """Combine monotony, strain and ACWR into a single risk level."""
    ratio = acwr if acwr is not None else 0.0

    if monotony > config.monotony_high or strain > config.strain_high:
        return StrainRisk.VERY_HIGH
    if monotony > config.monotony_moderate or strain > config.strain_moderate or ratio > config.acwr_risk_high:
        return StrainRisk.HIGH
    if monotony > config.monotony_low or strain > config.strain_low or ratio > config.acwr_optimal_high:
        return StrainRisk.MODERATE
    return StrainRisk.LOW


def compute_load_series(daily: list[tuple[date, float]], config: LoadSettings) -> list[LoadSnapshot]:
    """Compute one LoadSnapshot per day of a contiguous daily series."""
    loads = [load for _, load in daily]
    ctl_values = calculate_ewma(loads, config.ctl_time_constant_days)
    atl_values = calculate_ewma(loads, config.atl_time_constant_days)

    snapshots: list[LoadSnapshot] = []
    for i, (day, _) in enumerate(daily):
        ctl = ctl_values[i]
        atl = atl_values[i]
        trailing = loads[max(0, i - WEEK_DAYS + 1) : i + 1]
        weekly_load = sum(trailing)
        monotony = calculate_monotony(trailing)
        snapshots.append(
            LoadSnapshot(
                date=day,
                ctl=ctl,
                atl=atl,
                tsb=ctl - atl,
                acwr=calculate_acwr(atl, ctl),
                monotony=monotony,
                strain=weekly_load * monotony,
                weekly_load=weekly_load,
            )
        )
    return snapshots


def compute_load_metrics(
    records: list[DailyTrainingRecord],
    today: date,
    config: LoadSettings | None = None,
    use_session_rpe: bool = False,
) -> LoadMetrics:
    """Compute the current load state and its trends.

    Args:
        records: Daily training records covering (at least) the window
        today: Evaluation date
        config: Load constants; defaults to LoadSettings()
        use_session_rpe: Use session-RPE load instead of TSS

    Returns:
        LoadMetrics. With no records every value is 0, ACWR is undefined
        and all trends are stable. Trends only consider days from the first
        record in the window onward; zero-filled days before it are not
        history.
    """
    config = config or LoadSettings()
    daily = build_daily_series(records, today, config.window_days, use_session_rpe)
    series = compute_load_series(daily, config)
    current = series[-1]

    observed = observed_days(records, daily[0][0], today)
    history = series[len(series) - observed :] if observed else []
    ctl_values = [s.ctl for s in history]
    atl_values = [s.atl for s in history]
    tsb_values = [s.tsb for s in history]

    return LoadMetrics(
        current=current,
        series=tuple(series),
        ctl_trend=compare_windows(ctl_values, config.trend_window_days, config.trend_band_pct),
        atl_trend=compare_windows(atl_values, config.trend_window_days, config.trend_band_pct),
        acwr_band=classify_acwr(current.acwr, config),
        tsb_trend=classify_slope(tsb_values[-config.tsb_trend_points :], config.tsb_trend_slope),
        strain_risk=classify_strain_risk(current.monotony, current.strain, current.acwr, config),
        tsb_window_trend=compare_windows(tsb_values, config.trend_window_days, config.trend_band_pct),
    )


def observed_days(records: list[DailyTrainingRecord], start: date, today: date) -> int:
    """Days from the first record inside [start, today] through today; 0 without records."""
    dates = [r.date for r in records if start <= r.date <= today]
    if not dates:
        return 0
    return (today - min(dates)).days + 1


def classify_load_trend(values: list[float], config: LoadSettings | None = None) -> LoadTrend:
    """Classify an arbitrary daily series as rising, falling or stable."""
    config = config or LoadSettings()
    return compare_windows(values, config.trend_window_days, config.trend_band_pct)
