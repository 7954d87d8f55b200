"""Shared test fixtures for leak-hunter."""

import math
from pathlib import Path

import pytest

from leak_hunter.config import EngineConfig
from leak_hunter.engine import LeakEngine
from leak_hunter.history import Episode, Resolution
from leak_hunter.scoring import Assessment, Severity
from leak_hunter.storage import init_database
from leak_hunter.tracker import Suspect, SuspectState

T0 = 1_760_000_000.0  # Arbitrary fixed epoch for deterministic timestamps


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def initialized_db(tmp_db: Path) -> Path:
    """Create an initialized database with schema."""
    init_database(tmp_db)
    return tmp_db


def make_config(**overrides) -> EngineConfig:
    """Create an EngineConfig with defaults plus overrides."""
    return EngineConfig(**overrides)


def make_assessment(
    confidence: float = 0.9,
    slope: float = 10.0,
    fit_quality: float = 1.0,
    duration_hours: float = 10.0,
    periodicity_hours: float | None = None,
    sample_count: int = 60,
) -> Assessment:
    """Create an Assessment for driving the state machine directly."""
    return Assessment(
        confidence=confidence,
        slope_mb_per_hour=slope,
        fit_quality=fit_quality,
        duration_observed_hours=duration_hours,
        periodicity_hours=periodicity_hours,
        sample_count=sample_count,
    )


def make_suspect(
    pid: int = 123,
    name: str = "test",
    rate: float = 10.0,
    current_mb: float = 500.0,
    confidence: float = 0.9,
    state: SuspectState = SuspectState.SUSPECT,
    severity: Severity = Severity.MEDIUM,
    **kwargs,
) -> Suspect:
    """Create a Suspect with sensible defaults for testing."""
    defaults = {
        "duration_observed_hours": 10.0,
        "periodicity_hours": None,
        "baseline_mb": 400.0,
        "peak_mb": current_mb,
        "sample_count": 60,
        "detected_at": T0,
    }
    defaults.update(kwargs)
    return Suspect(
        process_id=pid,
        process_name=name,
        growth_rate_mb_per_hour=rate,
        current_mb=current_mb,
        confidence=confidence,
        state=state,
        severity=severity,
        **defaults,
    )


def make_episode(
    pid: int = 123,
    name: str = "test",
    detected_at: float = T0,
    resolved_at: float = T0 + 3600,
    resolution: Resolution = Resolution.PROCESS_EXITED,
    total_leaked_mb: float = 120.0,
) -> Episode:
    """Create an Episode for testing."""
    return Episode(
        process_id=pid,
        process_name=name,
        detected_at=detected_at,
        resolved_at=resolved_at,
        resolution=resolution,
        total_leaked_mb=total_leaked_mb,
        peak_growth_rate_mb_per_hour=12.0,
        peak_confidence=0.85,
    )


def feed_linear(
    engine: LeakEngine,
    pid: int,
    name: str,
    start_mb: float,
    rate_mb_per_hour: float,
    hours: float,
    interval: float = 600.0,
    t0: float = T0,
) -> float:
    """Record a noise-free linear series; returns the last timestamp."""
    steps = int(round(hours * 3600 / interval))
    ts = t0
    for i in range(steps + 1):
        ts = t0 + i * interval
        engine.record_sample(pid, name, start_mb + rate_mb_per_hour * (i * interval / 3600), ts)
    return ts


def feed_sine(
    engine: LeakEngine,
    pid: int,
    name: str,
    mean_mb: float,
    amplitude_mb: float,
    period_hours: float,
    hours: float,
    interval: float = 600.0,
    t0: float = T0,
) -> float:
    """Record a flat series with a sinusoidal cycle; returns the last timestamp."""
    steps = int(round(hours * 3600 / interval))
    ts = t0
    for i in range(steps + 1):
        ts = t0 + i * interval
        hours_elapsed = i * interval / 3600
        value = mean_mb + amplitude_mb * math.sin(2 * math.pi * hours_elapsed / period_hours)
        engine.record_sample(pid, name, value, ts)
    return ts
