"""Append-only log of closed leak episodes."""

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

log = structlog.get_logger()


class Resolution(Enum):
    """Why an episode ended."""

    PROCESS_EXITED = "process_exited"
    DISMISSED = "dismissed"
    AUTO_REMEDIATED = "auto_remediated"  # Growth subsided on its own


@dataclass(frozen=True)
class Episode:
    """One suspect lifecycle, from alertable detection to resolution."""

    process_id: int
    process_name: str
    detected_at: float
    resolved_at: float
    resolution: Resolution
    total_leaked_mb: float
    peak_growth_rate_mb_per_hour: float = 0.0
    peak_confidence: float = 0.0

    @property
    def duration_seconds(self) -> float:
        return self.resolved_at - self.detected_at


EpisodeListener = Callable[[Episode], None]


class HistoryLog:
    """Bounded, thread-safe episode log; oldest entries drop off first."""

    def __init__(self, max_entries: int = 500) -> None:
        self._lock = threading.Lock()
        self._episodes: deque[Episode] = deque(maxlen=max_entries)
        self._listeners: list[EpisodeListener] = []

    def __len__(self) -> int:
        return len(self._episodes)

    @property
    def capacity(self) -> int:
        """Maximum number of retained episodes."""
        return self._episodes.maxlen or 0

    def resize(self, max_entries: int) -> None:
        """Change capacity, keeping the most recent episodes."""
        with self._lock:
            if max_entries != self._episodes.maxlen:
                self._episodes = deque(self._episodes, maxlen=max_entries)

    def subscribe(self, listener: EpisodeListener) -> None:
        """Call listener with every appended episode (e.g. a persistence sink)."""
        self._listeners.append(listener)

    def append(self, episode: Episode) -> None:
        """Record an episode and notify listeners."""
        self.record(episode)
        self.notify(episode)

    def record(self, episode: Episode) -> None:
        """Store an episode in memory only; no listener runs."""
        with self._lock:
            self._episodes.append(episode)

    def notify(self, episode: Episode) -> None:
        """Hand a recorded episode to listeners.

        Listeners may block (database writes, console output), so callers
        must not hold registry locks. Failures are logged and never undo
        the record.
        """
        log.info(
            "episode_recorded",
            process=episode.process_name,
            pid=episode.process_id,
            resolution=episode.resolution.value,
            leaked_mb=round(episode.total_leaked_mb, 1),
        )

        for listener in list(self._listeners):
            try:
                listener(episode)
            except Exception:
                log.exception("episode_listener_failed", pid=episode.process_id)

    def recent(self, limit: int | None = None) -> list[Episode]:
        """Most recent episodes first."""
        with self._lock:
            episodes = list(self._episodes)
        episodes.reverse()
        if limit is not None:
            episodes = episodes[: max(0, limit)]
        return episodes
