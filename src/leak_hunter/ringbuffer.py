"""Time-bounded ring buffer of memory samples for one process.

Samples older than the retention window (relative to the newest sample)
are evicted on every push, so the buffer covers at most window_duration
seconds of history regardless of sampling cadence.
"""

import math
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class Sample:
    """Single memory reading."""

    timestamp: float
    memory_mb: float


@dataclass(frozen=True)
class SeriesSnapshot:
    """Immutable view of a series for analysis."""

    timestamps: tuple[float, ...]
    memory_mb: tuple[float, ...]

    def __len__(self) -> int:
        return len(self.timestamps)

    @property
    def is_empty(self) -> bool:
        """Return True if the snapshot has no samples."""
        return len(self.timestamps) == 0

    @property
    def duration_seconds(self) -> float:
        """Time covered by the snapshot (0 for fewer than two samples)."""
        if len(self.timestamps) < 2:
            return 0.0
        return self.timestamps[-1] - self.timestamps[0]

    @classmethod
    def from_samples(cls, samples: list[Sample]) -> "SeriesSnapshot":
        """Build a snapshot from an ordered list of samples."""
        return cls(
            timestamps=tuple(s.timestamp for s in samples),
            memory_mb=tuple(s.memory_mb for s in samples),
        )


class ProcessSeries:
    """Memory samples for one (pid, name) pair, evicted on the time axis."""

    def __init__(self, pid: int, name: str, window_duration: float) -> None:
        self.pid = pid
        self.name = name
        self._window = window_duration
        self._samples: deque[Sample] = deque()
        self.baseline_mb: float | None = None
        self.peak_mb: float = 0.0

    def __len__(self) -> int:
        """Return number of samples in buffer."""
        return len(self._samples)

    @property
    def window_duration(self) -> float:
        """Retention window in seconds."""
        return self._window

    @property
    def is_empty(self) -> bool:
        """Return True if buffer has no samples."""
        return len(self._samples) == 0

    @property
    def latest(self) -> Sample | None:
        """Most recent sample, or None."""
        return self._samples[-1] if self._samples else None

    @property
    def samples(self) -> list[Sample]:
        """Read-only access to samples (returns a copy)."""
        return list(self._samples)

    def set_window(self, window_duration: float) -> None:
        """Change the retention window and evict immediately."""
        self._window = window_duration
        self._evict()

    def record(self, memory_mb: float, timestamp: float) -> bool:
        """Append a sample.

        Returns False (and stores nothing) for negative or non-finite memory
        and for timestamps older than the newest stored sample.
        """
        if not math.isfinite(memory_mb) or memory_mb < 0:
            return False
        if not math.isfinite(timestamp):
            return False
        if self._samples and timestamp < self._samples[-1].timestamp:
            return False

        self._samples.append(Sample(timestamp=timestamp, memory_mb=memory_mb))
        if self.baseline_mb is None:
            self.baseline_mb = memory_mb
        self.peak_mb = max(self.peak_mb, memory_mb)
        self._evict()
        return True

    def _evict(self) -> None:
        if not self._samples:
            return
        cutoff = self._samples[-1].timestamp - self._window
        while self._samples and self._samples[0].timestamp < cutoff:
            self._samples.popleft()

    def clear(self) -> None:
        """Empty the buffer."""
        self._samples.clear()

    def snapshot(self) -> SeriesSnapshot:
        """Return immutable copy of buffer contents."""
        return SeriesSnapshot.from_samples(list(self._samples))
