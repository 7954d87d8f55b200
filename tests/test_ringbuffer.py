"""Tests for the time-bounded sample buffer."""

import math

from leak_hunter.ringbuffer import ProcessSeries, Sample, SeriesSnapshot

from tests.conftest import T0


def test_record_accepts_increasing_samples():
    """Samples with increasing timestamps are stored in order."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    assert series.record(100.0, T0)
    assert series.record(110.0, T0 + 60)
    assert len(series) == 2
    assert series.latest == Sample(timestamp=T0 + 60, memory_mb=110.0)


def test_record_rejects_negative_memory():
    """Negative readings are dropped and leave the buffer unchanged."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    assert not series.record(-1.0, T0)
    assert series.is_empty


def test_record_rejects_non_finite_values():
    """NaN and infinite readings are dropped."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    assert not series.record(math.nan, T0)
    assert not series.record(math.inf, T0)
    assert not series.record(10.0, math.nan)
    assert series.is_empty


def test_record_rejects_backwards_timestamp():
    """A sample older than the newest stored one is dropped."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    series.record(100.0, T0 + 100)
    assert not series.record(120.0, T0 + 50)
    assert len(series) == 1


def test_record_accepts_equal_timestamp():
    """Duplicate timestamps are not a clock regression."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    series.record(100.0, T0)
    assert series.record(101.0, T0)
    assert len(series) == 2


def test_eviction_keeps_only_window():
    """After any push, every sample lies within the window of the newest."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    for i in range(601):  # 10 windows at one-minute cadence
        ts = T0 + i * 60
        series.record(100.0 + i, ts)
        snap = series.snapshot()
        assert snap.timestamps[0] >= ts - 3600

    assert len(series) == 61


def test_eviction_follows_time_not_count():
    """A long gap evicts everything older than the window at once."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    for i in range(10):
        series.record(100.0, T0 + i)
    series.record(100.0, T0 + 10_000)
    assert len(series) == 1


def test_baseline_and_peak_survive_eviction():
    """Baseline is the first sample ever; peak is the maximum ever."""
    series = ProcessSeries(1, "proc", window_duration=60)
    series.record(100.0, T0)
    series.record(500.0, T0 + 30)
    series.record(200.0, T0 + 1000)

    assert len(series) == 1
    assert series.baseline_mb == 100.0
    assert series.peak_mb == 500.0


def test_set_window_evicts_immediately():
    """Shrinking the window drops samples that no longer fit."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    for i in range(10):
        series.record(100.0, T0 + i * 600)
    series.set_window(1200)
    assert series.window_duration == 1200
    assert len(series) == 3


def test_snapshot_is_independent_copy():
    """Later pushes do not change an existing snapshot."""
    series = ProcessSeries(1, "proc", window_duration=3600)
    series.record(100.0, T0)
    series.record(110.0, T0 + 60)
    snap = series.snapshot()
    series.record(120.0, T0 + 120)

    assert len(snap) == 2
    assert snap.memory_mb == (100.0, 110.0)
    assert snap.duration_seconds == 60


def test_snapshot_duration_of_single_sample_is_zero():
    """Fewer than two samples cover no time."""
    snap = SeriesSnapshot.from_samples([Sample(T0, 1.0)])
    assert snap.duration_seconds == 0.0
    assert not snap.is_empty
    assert SeriesSnapshot((), ()).is_empty
