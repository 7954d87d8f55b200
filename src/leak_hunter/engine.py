"""Leak detection engine: the sampling and query surface."""

from __future__ import annotations

import threading
from dataclasses import dataclass

import structlog

from leak_hunter.alerts import AlertCallback, AlertGate
from leak_hunter.config import EngineConfig
from leak_hunter.history import Episode, EpisodeListener, HistoryLog
from leak_hunter.projection import TimeEstimate, estimate_time_to_pressure
from leak_hunter.scoring import Assessment
from leak_hunter.tracker import (
    Suspect,
    SuspectNotFound,
    SuspectRegistry,
    SuspectState,
    Transition,
)

log = structlog.get_logger()

__all__ = ["EngineStats", "LeakEngine", "SuspectNotFound"]


@dataclass(frozen=True)
class EngineStats:
    """Counters for heartbeat logging and status output."""

    tracked: int
    suspects: int
    growing: int
    dismissed: int
    samples_recorded: int
    samples_rejected: int
    alerts_sent: int


def _ranking_key(s: Suspect) -> tuple[float, float, str]:
    return (-s.growth_rate_mb_per_hour, -s.confidence, s.process_name)


class LeakEngine:
    """Detects leaking processes from pushed memory samples.

    record_sample() and the operator actions may be called from any thread;
    work for one process id is serialized inside the registry. Queries read
    published snapshots and never wait on the sampling path.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        config = config or EngineConfig()
        config.validate()
        self._config = config
        self.history = HistoryLog(max_entries=config.history_max_entries)
        self.registry = SuspectRegistry(self.history, shards=config.registry_shards)
        self.alerts = AlertGate()
        self._counter_lock = threading.Lock()
        self._samples_recorded = 0
        self._samples_rejected = 0

    @property
    def config(self) -> EngineConfig:
        """Current configuration snapshot."""
        return self._config

    # --- Inbound ---

    def record_sample(
        self,
        process_id: int,
        process_name: str,
        memory_mb: float,
        timestamp: float,
    ) -> None:
        """Feed one memory reading for one process."""
        config = self._config  # One snapshot for the whole cycle
        accepted, transitions = self.registry.observe(
            process_id, process_name, memory_mb, timestamp, config
        )
        with self._counter_lock:
            if accepted:
                self._samples_recorded += 1
            else:
                self._samples_rejected += 1
        self._dispatch(transitions)

    def record_assessment(
        self,
        process_id: int,
        process_name: str,
        assessment: Assessment,
        current_mb: float,
        timestamp: float,
    ) -> None:
        """Advance a process from a precomputed assessment (replay and testing)."""
        transition = self.registry.apply_assessment(
            process_id, process_name, assessment, current_mb, timestamp, self._config
        )
        if transition is not None:
            self._dispatch([transition])

    def process_terminated(self, process_id: int, timestamp: float | None = None) -> None:
        """The process no longer exists; resolve it."""
        transition = self.registry.terminate(process_id, timestamp)
        if transition is not None:
            self._dispatch([transition])

    def dismiss(self, process_id: int, timestamp: float | None = None) -> None:
        """Operator dismissal; repeating it while dismissed is a no-op.

        Raises:
            SuspectNotFound: process_id is not tracked.
        """
        transition = self.registry.dismiss(process_id, timestamp)
        if transition is not None:
            self._dispatch([transition])

    def reconfigure(self, config: EngineConfig) -> None:
        """Swap in a new configuration; takes effect from the next sample.

        Raises:
            ValueError: config is invalid; the current config stays active.
        """
        config.validate()
        if config.registry_shards != self._config.registry_shards:
            log.warning(
                "reconfigure_shards_ignored",
                current=self._config.registry_shards,
                requested=config.registry_shards,
            )
        self.history.resize(config.history_max_entries)
        self._config = config
        log.info(
            "engine_reconfigured",
            threshold=config.confidence_alert_threshold,
            hysteresis=config.hysteresis_margin,
            window_hours=round(config.window_duration / 3600.0, 2),
            min_growth_mb=config.min_absolute_growth_mb,
        )

    def _dispatch(self, transitions: list[Transition]) -> None:
        # Runs outside every shard lock; listeners may block
        for transition in transitions:
            if transition.episode is not None:
                self.history.notify(transition.episode)
            self.alerts.handle(transition)

    # --- Outbound ---

    def on_alert(self, callback: AlertCallback) -> None:
        """Register an alert delivery callback."""
        self.alerts.register(callback)

    def on_episode(self, callback: EpisodeListener) -> None:
        """Register a listener for closed episodes (e.g. persistence)."""
        self.history.subscribe(callback)

    def list_suspects(self, confirmed_only: bool = False) -> list[Suspect]:
        """Live processes ranked by growth, then confidence, then name."""
        suspects = self.registry.snapshot()
        if confirmed_only:
            suspects = [s for s in suspects if s.state is SuspectState.SUSPECT]
        return sorted(suspects, key=_ranking_key)

    def top_growing(self, count: int = 5) -> list[Suspect]:
        """Fastest-growing tracked processes regardless of state."""
        growing = [s for s in self.registry.snapshot() if s.growth_rate_mb_per_hour > 0]
        return sorted(growing, key=_ranking_key)[:count]

    def get_history(self, limit: int = 20) -> list[Episode]:
        """Closed episodes, most recent first."""
        return self.history.recent(limit)

    def estimate_time_to_pressure(self, free_headroom_mb: float) -> TimeEstimate:
        """Hours until confirmed suspects consume free_headroom_mb."""
        return estimate_time_to_pressure(self.registry.snapshot(), free_headroom_mb)

    def stats(self) -> EngineStats:
        """Snapshot of engine counters."""
        suspects = self.registry.snapshot()
        return EngineStats(
            tracked=len(suspects),
            suspects=sum(1 for s in suspects if s.state is SuspectState.SUSPECT),
            growing=sum(1 for s in suspects if s.growth_rate_mb_per_hour > 1.0),
            dismissed=self.registry.dismissed_count(),
            samples_recorded=self._samples_recorded,
            samples_rejected=self._samples_rejected,
            alerts_sent=self.alerts.sent_count,
        )
