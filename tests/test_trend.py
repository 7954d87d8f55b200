"""Tests for least-squares trend estimation."""

import numpy as np
import pytest

from leak_hunter.ringbuffer import SeriesSnapshot
from leak_hunter.trend import estimate_trend

from tests.conftest import T0


def make_snapshot(values, interval: float = 600.0, t0: float = T0) -> SeriesSnapshot:
    """Snapshot with evenly spaced timestamps."""
    return SeriesSnapshot(
        timestamps=tuple(t0 + i * interval for i in range(len(values))),
        memory_mb=tuple(float(v) for v in values),
    )


def test_linear_series_recovers_slope():
    """A noise-free 5 MB/hour series fits exactly."""
    hours = np.arange(145) / 6.0
    trend = estimate_trend(make_snapshot(100.0 + 5.0 * hours))

    assert trend is not None
    assert trend.slope_mb_per_hour == pytest.approx(5.0)
    assert trend.intercept_mb == pytest.approx(100.0)
    assert trend.fit_quality == pytest.approx(1.0)
    assert trend.duration_observed_hours == pytest.approx(24.0)
    assert trend.sample_count == 145


def test_noisy_series_slope_within_five_percent():
    """Gaussian noise around a 5 MB/hour leak still yields the rate within 5%."""
    rng = np.random.default_rng(42)
    hours = np.arange(145) / 6.0
    values = 300.0 + 5.0 * hours + rng.normal(0.0, 2.0, size=hours.size)

    trend = estimate_trend(make_snapshot(values))

    assert trend is not None
    assert trend.slope_mb_per_hour == pytest.approx(5.0, rel=0.05)
    assert 0.9 < trend.fit_quality <= 1.0


def test_insufficient_samples_returns_none():
    """Fewer than min_samples points yield no estimate."""
    assert estimate_trend(make_snapshot([100, 110, 120]), min_samples=8) is None


def test_identical_timestamps_return_none():
    """A zero time span has no defined slope."""
    snap = SeriesSnapshot(timestamps=(T0,) * 10, memory_mb=tuple(range(10)))
    assert estimate_trend(snap, min_samples=8) is None


def test_flat_series_has_zero_slope_and_fit():
    """Constant memory has nothing to explain."""
    trend = estimate_trend(make_snapshot([250.0] * 20))
    assert trend is not None
    assert trend.slope_mb_per_hour == pytest.approx(0.0)
    assert trend.fit_quality == 0.0


def test_decreasing_series_has_negative_slope():
    """Shrinking memory reports a negative rate."""
    trend = estimate_trend(make_snapshot([500 - 2 * i for i in range(20)]))
    assert trend is not None
    assert trend.slope_mb_per_hour < 0


def test_irregular_spacing_uses_timestamps():
    """Slope is per hour of elapsed time, not per sample."""
    timestamps = (T0, T0 + 600, T0 + 3600, T0 + 7200, T0 + 7800, T0 + 10800, T0 + 14400, T0 + 18000)
    values = tuple(100.0 + 10.0 * (t - T0) / 3600 for t in timestamps)
    trend = estimate_trend(SeriesSnapshot(timestamps, values), min_samples=8)
    assert trend is not None
    assert trend.slope_mb_per_hour == pytest.approx(10.0)
