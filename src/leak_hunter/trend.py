"""Least-squares growth trend over a series window."""

from dataclasses import dataclass

import numpy as np

from leak_hunter.ringbuffer import SeriesSnapshot

SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class TrendResult:
    """Linear fit of memory against elapsed time."""

    slope_mb_per_hour: float
    intercept_mb: float
    fit_quality: float  # R², clamped to [0, 1]
    duration_observed_hours: float
    sample_count: int


def elapsed_hours(snapshot: SeriesSnapshot) -> np.ndarray:
    """Hours since the first sample, as a float array."""
    t = np.asarray(snapshot.timestamps, dtype=float)
    return (t - t[0]) / SECONDS_PER_HOUR


def estimate_trend(snapshot: SeriesSnapshot, min_samples: int = 8) -> TrendResult | None:
    """Fit memory_mb = intercept + slope * hours by ordinary least squares.

    Returns None when there are fewer than min_samples points or all samples
    share one timestamp (the slope is undefined). Raw values are used; a
    single spike is diluted by the window, not rejected.
    """
    n = len(snapshot)
    if n < min_samples or n < 2:
        return None

    x = elapsed_hours(snapshot)
    y = np.asarray(snapshot.memory_mb, dtype=float)

    x_mean = x.mean()
    y_mean = y.mean()
    dx = x - x_mean
    sxx = float(np.dot(dx, dx))
    if sxx <= 0.0:
        return None

    slope = float(np.dot(dx, y - y_mean) / sxx)
    intercept = float(y_mean - slope * x_mean)

    residuals = y - (intercept + slope * x)
    ss_res = float(np.dot(residuals, residuals))
    ss_tot = float(np.dot(y - y_mean, y - y_mean))
    # A flat series has nothing to explain: no evidence of a trend
    r_squared = 0.0 if ss_tot <= 1e-12 else 1.0 - ss_res / ss_tot

    return TrendResult(
        slope_mb_per_hour=slope,
        intercept_mb=intercept,
        fit_quality=min(1.0, max(0.0, r_squared)),
        duration_observed_hours=float(x[-1]),
        sample_count=n,
    )
