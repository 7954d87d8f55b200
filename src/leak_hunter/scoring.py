"""Composite leak confidence and severity classification."""

from dataclasses import dataclass
from enum import Enum

from leak_hunter.config import EngineConfig
from leak_hunter.ringbuffer import SeriesSnapshot
from leak_hunter.spectral import analyze_spectrum
from leak_hunter.trend import TrendResult, estimate_trend

# Severity cut-offs: (growth MB/hour, growth percent over baseline)
CRITICAL_RATE = 100.0
CRITICAL_PERCENT = 500.0
HIGH_RATE = 50.0
HIGH_PERCENT = 200.0


class Severity(Enum):
    """How urgently a suspect needs attention."""

    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.NONE: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


@dataclass(frozen=True)
class Assessment:
    """Result of one analysis pass over a process series."""

    confidence: float
    slope_mb_per_hour: float
    fit_quality: float
    duration_observed_hours: float
    periodicity_hours: float | None
    sample_count: int

    @property
    def projected_growth_mb(self) -> float:
        """Growth implied by the trend over the observed duration."""
        return self.slope_mb_per_hour * self.duration_observed_hours


def saturate(value: float, reference: float) -> float:
    """Map value onto [0, 1], reaching 1 at reference."""
    if reference <= 0:
        return 0.0
    return min(1.0, max(0.0, value / reference))


def compute_confidence(trend: TrendResult | None, config: EngineConfig) -> float:
    """Weighted combination of fit, growth rate and observation time.

    Insufficient data and non-positive growth both score 0: without growth
    a good fit says nothing about a leak.
    """
    if trend is None or trend.slope_mb_per_hour <= 0:
        return 0.0

    fit_signal = trend.fit_quality
    growth_signal = saturate(trend.slope_mb_per_hour, config.reference_growth_rate_mb_per_hour)
    duration_signal = saturate(trend.duration_observed_hours, config.sufficient_observation_hours)

    total_weight = config.fit_weight + config.growth_weight + config.duration_weight
    confidence = (
        config.fit_weight * fit_signal
        + config.growth_weight * growth_signal
        + config.duration_weight * duration_signal
    ) / total_weight
    return min(1.0, max(0.0, confidence))


def assess(snapshot: SeriesSnapshot, config: EngineConfig) -> Assessment:
    """Run trend, spectral and confidence analysis on a snapshot.

    Periodicity is carried along as metadata and never lowers confidence.
    """
    trend = estimate_trend(snapshot, config.min_samples_for_trend)
    spectral = analyze_spectrum(
        snapshot,
        min_samples=config.min_samples_for_fft,
        noise_floor_multiple=config.noise_floor_multiple,
    )

    if trend is None:
        return Assessment(
            confidence=0.0,
            slope_mb_per_hour=0.0,
            fit_quality=0.0,
            duration_observed_hours=snapshot.duration_seconds / 3600.0,
            periodicity_hours=spectral.dominant_period_hours,
            sample_count=len(snapshot),
        )

    return Assessment(
        confidence=compute_confidence(trend, config),
        slope_mb_per_hour=trend.slope_mb_per_hour,
        fit_quality=trend.fit_quality,
        duration_observed_hours=trend.duration_observed_hours,
        periodicity_hours=spectral.dominant_period_hours,
        sample_count=trend.sample_count,
    )


def growth_percent(baseline_mb: float, current_mb: float) -> float:
    """Percent change from baseline (0 when baseline is 0)."""
    if baseline_mb <= 0:
        return 0.0
    return (current_mb - baseline_mb) / baseline_mb * 100.0


def classify_severity(rate_mb_per_hour: float, percent: float, is_suspect: bool) -> Severity:
    """Bucket a process by growth rate and relative growth."""
    if not is_suspect:
        return Severity.NONE
    if rate_mb_per_hour > CRITICAL_RATE or percent > CRITICAL_PERCENT:
        return Severity.CRITICAL
    if rate_mb_per_hour > HIGH_RATE or percent > HIGH_PERCENT:
        return Severity.HIGH
    return Severity.MEDIUM


def recommendation(name: str, severity: Severity, rate_mb_per_hour: float, percent: float) -> str:
    """Operator-facing advice for a suspect."""
    if severity is Severity.CRITICAL:
        return f"CRITICAL: {name} is growing at {rate_mb_per_hour:.0f} MB/hour. Restart it now."
    if severity is Severity.HIGH:
        return f"HIGH: {name} has grown {percent:.0f}%. Consider restarting soon."
    if severity is Severity.MEDIUM:
        return f"MEDIUM: {name} shows gradual memory growth. Monitor closely."
    return "No action needed"
