"""Tests for confidence scoring and severity classification."""

import numpy as np
import pytest

from leak_hunter.config import EngineConfig
from leak_hunter.ringbuffer import SeriesSnapshot
from leak_hunter.scoring import (
    Severity,
    assess,
    classify_severity,
    compute_confidence,
    growth_percent,
    recommendation,
    saturate,
)
from leak_hunter.trend import TrendResult

from tests.conftest import T0, make_assessment


def make_trend(slope: float, fit: float = 1.0, hours: float = 6.0) -> TrendResult:
    return TrendResult(
        slope_mb_per_hour=slope,
        intercept_mb=100.0,
        fit_quality=fit,
        duration_observed_hours=hours,
        sample_count=37,
    )


def test_saturate_clamps():
    assert saturate(5.0, 10.0) == 0.5
    assert saturate(20.0, 10.0) == 1.0
    assert saturate(-3.0, 10.0) == 0.0
    assert saturate(1.0, 0.0) == 0.0


def test_confidence_zero_without_trend():
    """Insufficient data scores 0, never a penalty term."""
    assert compute_confidence(None, EngineConfig()) == 0.0


def test_confidence_zero_for_shrinking_memory():
    """A perfect fit of a decreasing series is not leak evidence."""
    assert compute_confidence(make_trend(-5.0), EngineConfig()) == 0.0


def test_confidence_saturates_at_one():
    """Perfect fit at the reference rate for the full duration scores 1."""
    assert compute_confidence(make_trend(10.0, hours=6.0), EngineConfig()) == pytest.approx(1.0)


def test_confidence_weighted_sum():
    """0.5 * fit + 0.3 * growth + 0.2 * duration with default weights."""
    confidence = compute_confidence(make_trend(5.0, fit=1.0, hours=3.0), EngineConfig())
    assert confidence == pytest.approx(0.5 + 0.15 + 0.1)


def test_confidence_weights_are_normalized():
    """Weights not summing to 1 still produce a value in [0, 1]."""
    config = EngineConfig(fit_weight=2.0, growth_weight=2.0, duration_weight=0.0)
    assert compute_confidence(make_trend(5.0, fit=1.0), config) == pytest.approx(0.75)


def test_assess_without_enough_samples():
    """Short series produce a zero-confidence assessment, not an error."""
    snap = SeriesSnapshot(timestamps=(T0, T0 + 600), memory_mb=(100.0, 200.0))
    a = assess(snap, EngineConfig())
    assert a.confidence == 0.0
    assert a.sample_count == 2
    assert a.periodicity_hours is None


def test_assess_linear_leak():
    hours = np.arange(37) / 6.0
    snap = SeriesSnapshot(
        timestamps=tuple(T0 + h * 3600 for h in hours),
        memory_mb=tuple(100.0 + 10.0 * h for h in hours),
    )
    a = assess(snap, EngineConfig())
    assert a.slope_mb_per_hour == pytest.approx(10.0)
    assert a.confidence == pytest.approx(1.0)
    assert a.projected_growth_mb == pytest.approx(60.0)


def test_projected_growth():
    assert make_assessment(slope=4.0, duration_hours=5.0).projected_growth_mb == 20.0


def test_growth_percent():
    assert growth_percent(100.0, 150.0) == 50.0
    assert growth_percent(0.0, 150.0) == 0.0


@pytest.mark.parametrize(
    "rate,percent,expected",
    [
        (150.0, 10.0, Severity.CRITICAL),
        (5.0, 600.0, Severity.CRITICAL),
        (60.0, 10.0, Severity.HIGH),
        (5.0, 250.0, Severity.HIGH),
        (5.0, 10.0, Severity.MEDIUM),
    ],
)
def test_classify_severity(rate, percent, expected):
    assert classify_severity(rate, percent, is_suspect=True) is expected


def test_classify_severity_not_suspect():
    """Only confirmed suspects get a severity."""
    assert classify_severity(500.0, 900.0, is_suspect=False) is Severity.NONE


def test_severity_rank_orders_levels():
    assert Severity.NONE.rank < Severity.MEDIUM.rank < Severity.HIGH.rank < Severity.CRITICAL.rank


def test_recommendation_text():
    assert recommendation("app", Severity.CRITICAL, 120.0, 50.0).startswith("CRITICAL: app")
    assert "250%" in recommendation("app", Severity.HIGH, 20.0, 250.0)
    assert "Monitor closely" in recommendation("app", Severity.MEDIUM, 5.0, 20.0)
    assert recommendation("app", Severity.NONE, 0.0, 0.0) == "No action needed"
