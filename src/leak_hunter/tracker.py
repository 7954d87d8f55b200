"""Per-process leak suspect tracking."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import structlog

from leak_hunter.config import EngineConfig
from leak_hunter.history import Episode, HistoryLog, Resolution
from leak_hunter.ringbuffer import ProcessSeries
from leak_hunter.scoring import Assessment, Severity, assess, classify_severity, growth_percent

log = structlog.get_logger()


class SuspectState(Enum):
    """Lifecycle state of a tracked process."""

    TRACKING = "tracking"
    SUSPECT = "suspect"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"


class SuspectNotFound(LookupError):
    """Raised when an operator action names a process that is not tracked."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"No tracked process with pid {pid}")
        self.pid = pid


@dataclass(frozen=True)
class Suspect:
    """Read-only view of a tracked process at one point in time."""

    process_id: int
    process_name: str
    growth_rate_mb_per_hour: float
    current_mb: float
    duration_observed_hours: float
    confidence: float
    periodicity_hours: float | None
    state: SuspectState
    baseline_mb: float = 0.0
    peak_mb: float = 0.0
    sample_count: int = 0
    detected_at: float | None = None
    severity: Severity = Severity.NONE

    @property
    def growth_percent(self) -> float:
        return growth_percent(self.baseline_mb, self.current_mb)


@dataclass(frozen=True)
class Transition:
    """A state change produced by one registry operation."""

    old_state: SuspectState
    new_state: SuspectState
    suspect: Suspect
    episode: Episode | None = None


_NO_ASSESSMENT = Assessment(
    confidence=0.0,
    slope_mb_per_hour=0.0,
    fit_quality=0.0,
    duration_observed_hours=0.0,
    periodicity_hours=None,
    sample_count=0,
)


@dataclass
class TrackedProcess:
    """In-memory state for a tracked process."""

    pid: int
    name: str
    series: ProcessSeries
    state: SuspectState = SuspectState.TRACKING
    assessment: Assessment = _NO_ASSESSMENT
    current_mb: float = 0.0
    last_seen: float = 0.0
    detected_at: float | None = None  # Start of the open episode
    dismissed_at: float | None = None
    peak_rate: float = 0.0  # Peak growth during the open episode
    peak_confidence: float = 0.0

    def to_suspect(self) -> Suspect:
        a = self.assessment
        baseline = self.series.baseline_mb or 0.0
        return Suspect(
            process_id=self.pid,
            process_name=self.name,
            growth_rate_mb_per_hour=a.slope_mb_per_hour,
            current_mb=self.current_mb,
            duration_observed_hours=a.duration_observed_hours,
            confidence=a.confidence,
            periodicity_hours=a.periodicity_hours,
            state=self.state,
            baseline_mb=baseline,
            peak_mb=self.series.peak_mb,
            sample_count=a.sample_count,
            detected_at=self.detected_at,
            severity=classify_severity(
                a.slope_mb_per_hour,
                growth_percent(baseline, self.current_mb),
                self.state is SuspectState.SUSPECT,
            ),
        )


@dataclass
class _Shard:
    """One partition of the registry; its lock serializes its pids."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    tracked: dict[int, TrackedProcess] = field(default_factory=dict)
    published: Mapping[int, Suspect] = field(default_factory=lambda: MappingProxyType({}))


# States shown to readers; dismissed entries stay internal for the cooldown
_LIVE_STATES = (SuspectState.TRACKING, SuspectState.SUSPECT)


class SuspectRegistry:
    """Tracks per-process leak state and manages episode lifecycle.

    Processes are partitioned into shards by pid. Updates to one pid hold
    only that pid's shard lock, so different processes can be updated
    concurrently while updates to the same process stay serialized. After
    every change the shard publishes a fresh immutable mapping that readers
    consume without locking.
    """

    def __init__(self, history: HistoryLog, shards: int = 16) -> None:
        self.history = history
        self._shards = tuple(_Shard() for _ in range(max(1, shards)))

    def _shard(self, pid: int) -> _Shard:
        return self._shards[pid % len(self._shards)]

    @contextmanager
    def _locked(self, pid: int) -> Iterator[_Shard]:
        shard = self._shard(pid)
        with shard.lock:
            yield shard
            self._publish(shard)

    @staticmethod
    def _publish(shard: _Shard) -> None:
        shard.published = MappingProxyType(
            {
                pid: tracked.to_suspect()
                for pid, tracked in shard.tracked.items()
                if tracked.state in _LIVE_STATES
            }
        )

    # --- Sampling path ---

    def observe(
        self,
        pid: int,
        name: str,
        memory_mb: float,
        timestamp: float,
        config: EngineConfig,
    ) -> tuple[bool, list[Transition]]:
        """Record a sample, re-assess the process and advance its state.

        Returns whether the sample was accepted and the resulting
        transitions. Invalid samples (negative memory, timestamps going
        backwards) are dropped without raising.
        """
        transitions: list[Transition] = []
        with self._locked(pid) as shard:
            tracked = shard.tracked.get(pid)

            # Same pid, different name: the old process is gone (pid reuse)
            if tracked is not None and tracked.name != name:
                transition = self._resolve(shard, tracked, tracked.last_seen)
                if transition is not None:
                    transitions.append(transition)
                tracked = None

            if tracked is None:
                tracked = TrackedProcess(
                    pid=pid,
                    name=name,
                    series=ProcessSeries(pid, name, config.window_duration),
                )
                shard.tracked[pid] = tracked
                log.debug("tracking_started", pid=pid, process=name)

            if tracked.series.window_duration != config.window_duration:
                tracked.series.set_window(config.window_duration)

            if not tracked.series.record(memory_mb, timestamp):
                log.debug(
                    "sample_rejected",
                    pid=pid,
                    process=name,
                    memory_mb=memory_mb,
                    timestamp=timestamp,
                )
                if tracked.series.is_empty:
                    # Never got a valid sample; don't keep an empty entry
                    del shard.tracked[pid]
                return False, transitions

            tracked.current_mb = memory_mb
            tracked.last_seen = timestamp
            tracked.assessment = assess(tracked.series.snapshot(), config)

            transition = self._advance(tracked, timestamp, config)
            if transition is not None:
                transitions.append(transition)
        return True, transitions

    def apply_assessment(
        self,
        pid: int,
        name: str,
        assessment: Assessment,
        current_mb: float,
        timestamp: float,
        config: EngineConfig,
    ) -> Transition | None:
        """Advance a process's state from an externally computed assessment."""
        with self._locked(pid) as shard:
            tracked = shard.tracked.get(pid)
            if tracked is None:
                tracked = TrackedProcess(
                    pid=pid,
                    name=name,
                    series=ProcessSeries(pid, name, config.window_duration),
                )
                tracked.series.record(current_mb, timestamp)
                shard.tracked[pid] = tracked
            tracked.assessment = assessment
            tracked.current_mb = current_mb
            tracked.last_seen = timestamp
            return self._advance(tracked, timestamp, config)

    def _advance(
        self,
        tracked: TrackedProcess,
        timestamp: float,
        config: EngineConfig,
    ) -> Transition | None:
        """Apply one step of the state machine for a fresh assessment."""
        a = tracked.assessment

        if tracked.state is SuspectState.DISMISSED:
            assert tracked.dismissed_at is not None
            cooldown = config.dismiss_cooldown_hours * 3600.0
            if timestamp - tracked.dismissed_at < cooldown:
                return None
            tracked.state = SuspectState.TRACKING
            tracked.dismissed_at = None
            log.info("dismissal_expired", pid=tracked.pid, process=tracked.name)

        if tracked.state is SuspectState.TRACKING:
            crosses = a.confidence >= config.confidence_alert_threshold
            significant = a.projected_growth_mb >= config.min_absolute_growth_mb
            if crosses and significant:
                tracked.state = SuspectState.SUSPECT
                tracked.detected_at = timestamp
                tracked.peak_rate = a.slope_mb_per_hour
                tracked.peak_confidence = a.confidence
                log.info(
                    "suspect_detected",
                    pid=tracked.pid,
                    process=tracked.name,
                    confidence=round(a.confidence, 3),
                    growth_mb_per_hour=round(a.slope_mb_per_hour, 2),
                    periodicity_hours=a.periodicity_hours,
                )
                return Transition(
                    old_state=SuspectState.TRACKING,
                    new_state=SuspectState.SUSPECT,
                    suspect=tracked.to_suspect(),
                )
            return None

        # SUSPECT: update peaks, release only below threshold minus margin
        tracked.peak_rate = max(tracked.peak_rate, a.slope_mb_per_hour)
        tracked.peak_confidence = max(tracked.peak_confidence, a.confidence)
        if a.confidence >= config.release_threshold:
            return None

        episode = self._close_episode(tracked, timestamp, Resolution.AUTO_REMEDIATED)
        tracked.state = SuspectState.TRACKING
        log.info(
            "suspect_cleared",
            pid=tracked.pid,
            process=tracked.name,
            confidence=round(a.confidence, 3),
        )
        return Transition(
            old_state=SuspectState.SUSPECT,
            new_state=SuspectState.TRACKING,
            suspect=tracked.to_suspect(),
            episode=episode,
        )

    def _close_episode(
        self,
        tracked: TrackedProcess,
        timestamp: float,
        resolution: Resolution,
    ) -> Episode:
        """Store the open episode in history and reset episode state.

        Listeners are not called here; the engine notifies them once the
        shard lock is released.
        """
        assert tracked.detected_at is not None
        baseline = tracked.series.baseline_mb or 0.0
        episode = Episode(
            process_id=tracked.pid,
            process_name=tracked.name,
            detected_at=tracked.detected_at,
            resolved_at=max(timestamp, tracked.detected_at),
            resolution=resolution,
            total_leaked_mb=max(0.0, tracked.current_mb - baseline),
            peak_growth_rate_mb_per_hour=tracked.peak_rate,
            peak_confidence=tracked.peak_confidence,
        )
        self.history.record(episode)
        tracked.detected_at = None
        tracked.peak_rate = 0.0
        tracked.peak_confidence = 0.0
        return episode

    # --- Operator and lifecycle actions ---

    def terminate(self, pid: int, timestamp: float | None = None) -> Transition | None:
        """Drop a process that no longer exists.

        Returns the Resolved transition, or None for unknown pids.
        """
        with self._locked(pid) as shard:
            tracked = shard.tracked.get(pid)
            if tracked is None:
                return None
            return self._resolve(shard, tracked, timestamp)

    def _resolve(
        self,
        shard: _Shard,
        tracked: TrackedProcess,
        timestamp: float | None,
    ) -> Transition | None:
        del shard.tracked[tracked.pid]
        old_state = tracked.state
        when = timestamp if timestamp is not None else tracked.last_seen

        episode = None
        if old_state is SuspectState.SUSPECT:
            episode = self._close_episode(tracked, when, Resolution.PROCESS_EXITED)

        tracked.state = SuspectState.RESOLVED
        log.info(
            "tracking_ended",
            pid=tracked.pid,
            process=tracked.name,
            previous_state=old_state.value,
            reason="process_gone",
        )
        return Transition(
            old_state=old_state,
            new_state=SuspectState.RESOLVED,
            suspect=tracked.to_suspect(),
            episode=episode,
        )

    def dismiss(self, pid: int, timestamp: float | None = None) -> Transition | None:
        """Operator dismissal.

        Returns None when the process is already dismissed (idempotent).

        Raises:
            SuspectNotFound: pid is not tracked.
        """
        with self._locked(pid) as shard:
            tracked = shard.tracked.get(pid)
            if tracked is None:
                raise SuspectNotFound(pid)
            if tracked.state is SuspectState.DISMISSED:
                return None

            old_state = tracked.state
            when = timestamp if timestamp is not None else tracked.last_seen

            episode = None
            if old_state is SuspectState.SUSPECT:
                episode = self._close_episode(tracked, when, Resolution.DISMISSED)

            tracked.state = SuspectState.DISMISSED
            tracked.dismissed_at = when
            log.info(
                "suspect_dismissed",
                pid=pid,
                process=tracked.name,
                previous_state=old_state.value,
            )
            return Transition(
                old_state=old_state,
                new_state=SuspectState.DISMISSED,
                suspect=tracked.to_suspect(),
                episode=episode,
            )

    # --- Readers ---

    def snapshot(self) -> list[Suspect]:
        """All live (tracking or suspect) processes, unordered."""
        suspects: list[Suspect] = []
        for shard in self._shards:
            suspects.extend(shard.published.values())
        return suspects

    def state_of(self, pid: int) -> SuspectState | None:
        """Current state of a pid, or None if untracked."""
        tracked = self._shard(pid).tracked.get(pid)
        return tracked.state if tracked is not None else None

    def dismissed_count(self) -> int:
        """Number of processes currently in dismissal cooldown."""
        return sum(
            1
            for shard in self._shards
            for tracked in list(shard.tracked.values())
            if tracked.state is SuspectState.DISMISSED
        )

    def known_pids(self) -> set[int]:
        """Every pid with registry state, including dismissed ones."""
        pids: set[int] = set()
        for shard in self._shards:
            pids.update(list(shard.tracked.keys()))
        return pids
