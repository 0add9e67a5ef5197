"""Trend computation.

Simple linear and window-comparison trends for metrics over time.
"""

import numpy as np

from periodization.models.enums import DirectionTrend, LoadTrend


def compute_slope(values: list[float]) -> float:
    """Least-squares slope of values against their index (units per point).

    Returns 0.0 for fewer than 2 points.
    """
    if len(values) < 2:
        return 0.0

    x = np.arange(len(values), dtype=float)
    y = np.array(values, dtype=float)
    return float(np.polyfit(x, y, 1)[0])


def classify_slope(values: list[float], threshold: float, min_points: int = 3) -> DirectionTrend:
    """Classify the direction of a "higher is better" series by its slope.

    Args:
        values: Chronological values
        threshold: Minimum absolute slope to leave "stable"
        min_points: Fewer points than this classify as stable

    Returns:
        IMPROVING when slope > threshold, DECLINING when slope < -threshold
    """
    if len(values) < min_points:
        return DirectionTrend.STABLE

    slope = compute_slope(values)
    if slope > threshold:
        return DirectionTrend.IMPROVING
    if slope < -threshold:
        return DirectionTrend.DECLINING
    return DirectionTrend.STABLE


def compare_windows(values: list[float], window: int, band: float) -> LoadTrend:
    """Compare the mean of the last window against the preceding window.

    Fewer than 2 * window values classify as stable. The band is relative
    to the magnitude of the preceding mean, so series that sit below zero
    (TSB) rise when they move toward positive values.
    """
    if window <= 0 or len(values) < 2 * window:
        return LoadTrend.STABLE

    recent = values[-window:]
    previous = values[-2 * window : -window]
    recent_mean = sum(recent) / window
    previous_mean = sum(previous) / window
    margin = abs(previous_mean) * band

    if recent_mean > previous_mean + margin:
        return LoadTrend.RISING
    if recent_mean < previous_mean - margin:
        return LoadTrend.FALLING
    return LoadTrend.STABLE


def relative_change_trend(recent: list[float], older: list[float], band: float = 0.05) -> DirectionTrend:
    """Compare the mean of recent values against older values with a relative band."""
    if not recent or not older:
        return DirectionTrend.STABLE

    recent_mean = sum(recent) / len(recent)
    older_mean = sum(older) / len(older)
    if recent_mean > older_mean * (1 + band):
        return DirectionTrend.IMPROVING
    if recent_mean < older_mean * (1 - band):
        return DirectionTrend.DECLINING
    return DirectionTrend.STABLE
