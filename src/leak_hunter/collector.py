"""Per-process memory collection via psutil."""

import time
from dataclasses import dataclass

import psutil
import structlog

from leak_hunter.config import CollectorConfig

log = structlog.get_logger()

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class ProcessReading:
    """Resident memory of one process at one instant."""

    pid: int
    name: str
    memory_mb: float
    captured_at: float


@dataclass(frozen=True)
class CollectionResult:
    """One sampling pass over the process table."""

    readings: list[ProcessReading]
    live_pids: frozenset[int]  # Every pid seen, including untracked small ones
    captured_at: float
    skipped: int  # Processes we could not read (access denied, vanished)


class ProcessCollector:
    """Reads resident set size for every visible process."""

    def __init__(self, config: CollectorConfig) -> None:
        self.config = config
        self._exclude = {name.lower() for name in config.exclude}
        self._last_stamp: tuple[float, float] | None = None  # (wall, monotonic)

    def _timestamp(self) -> float:
        """Wall-clock time that never runs backwards between passes.

        If the system clock steps back (NTP, manual change), stamps keep
        advancing by monotonic elapsed time until the wall clock catches up,
        so the engine does not reject every sample as out of order.
        """
        wall = time.time()
        mono = time.monotonic()
        if self._last_stamp is not None:
            last_wall, last_mono = self._last_stamp
            floor = last_wall + (mono - last_mono)
            if wall < floor:
                log.debug("wall_clock_stepped_back", behind_seconds=round(floor - wall, 3))
                wall = floor
        self._last_stamp = (wall, mono)
        return wall

    def collect(self) -> CollectionResult:
        """Sample all processes above the configured memory floor."""
        captured_at = self._timestamp()
        readings: list[ProcessReading] = []
        live: set[int] = set()
        skipped = 0

        for proc in psutil.process_iter(["pid", "name", "memory_info"]):
            try:
                pid = proc.info["pid"]
                live.add(pid)
                name = proc.info["name"] or f"PID {pid}"
                mem = proc.info["memory_info"]
                if mem is None:
                    skipped += 1
                    continue
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                skipped += 1
                continue

            if name.lower() in self._exclude:
                continue

            memory_mb = mem.rss / BYTES_PER_MB
            if memory_mb < self.config.min_tracked_mb:
                continue

            readings.append(
                ProcessReading(pid=pid, name=name, memory_mb=memory_mb, captured_at=captured_at)
            )

        log.debug(
            "collection_complete",
            tracked=len(readings),
            live=len(live),
            skipped=skipped,
        )
        return CollectionResult(
            readings=readings,
            live_pids=frozenset(live),
            captured_at=captured_at,
            skipped=skipped,
        )


def available_memory_mb() -> float:
    """System-wide memory still available to allocate, in MB."""
    return psutil.virtual_memory().available / BYTES_PER_MB


def own_rss_mb() -> float:
    """Resident memory of this process, in MB."""
    return psutil.Process().memory_info().rss / BYTES_PER_MB
