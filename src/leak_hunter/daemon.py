"""Background daemon for leak-hunter."""

import asyncio
import os
import signal
import sqlite3
from dataclasses import dataclass
from datetime import datetime

import psutil
import structlog

from leak_hunter import logging as console
from leak_hunter.collector import (
    CollectionResult,
    ProcessCollector,
    available_memory_mb,
    own_rss_mb,
)
from leak_hunter.config import Config
from leak_hunter.engine import LeakEngine
from leak_hunter.notifications import Notifier
from leak_hunter.storage import EpisodeStore, get_connection, init_database, prune_old_episodes

log = structlog.get_logger()


@dataclass
class DaemonState:
    """Runtime state of the daemon."""

    running: bool = False
    sample_count: int = 0
    last_sample_time: datetime | None = None

    def update_sample(self) -> None:
        """Update state after a sampling cycle."""
        self.sample_count += 1
        self.last_sample_time = datetime.now()


class Daemon:
    """Main daemon class driving the collector and the leak engine."""

    def __init__(self, config: Config):
        self.config = config
        self.state = DaemonState()

        self.engine = LeakEngine(config.detection.to_engine_config())
        self.collector = ProcessCollector(config.collector)
        self.notifier = Notifier(config.alerts)

        self.engine.on_alert(console.suspect_detected)
        self.engine.on_alert(self.notifier)
        self.engine.on_episode(console.episode_closed)

        self._conn: sqlite3.Connection | None = None
        self._shutdown_event = asyncio.Event()
        self._auto_prune_task: asyncio.Task | None = None
        self._owns_pid_file = False

    def _init_database(self) -> None:
        """Open the episode database and subscribe it to the history log."""
        if not self.config.config_path.exists():
            self.config.save()
            console.config_created(str(self.config.config_path))

        init_database(self.config.db_path)
        self._conn = get_connection(self.config.db_path)
        self.engine.on_episode(EpisodeStore(self._conn))
        log.info("database_ready", path=str(self.config.db_path))

    async def start(self) -> None:
        """Start the daemon."""
        from importlib.metadata import version

        log.info("daemon_starting", version=version("leak-hunter"))

        detection = self.config.detection
        console.config_summary(
            detection.window_hours,
            detection.sample_interval_minutes,
            detection.confidence_alert_threshold,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        if self._check_already_running():
            console.already_running()
            raise RuntimeError("Daemon is already running")

        self._write_pid_file()
        self._init_database()

        self.state.running = True
        console.daemon_started()
        log.info("daemon_started")

        self._auto_prune_task = asyncio.create_task(self._auto_prune())

        await self._main_loop()

    async def stop(self) -> None:
        """Stop the daemon gracefully."""
        console.daemon_stopping()
        log.info("daemon_stopping")
        self.state.running = False

        if self._auto_prune_task:
            self._auto_prune_task.cancel()
            try:
                await self._auto_prune_task
            except asyncio.CancelledError:
                pass
            self._auto_prune_task = None

        if self._conn:
            self._conn.close()
            self._conn = None

        if self._owns_pid_file:
            self._remove_pid_file()
            self._owns_pid_file = False
        console.daemon_stopped()
        log.info("daemon_stopped")

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        console.signal_received(sig.name)
        log.info("signal_received", signal=sig.name)
        self._shutdown_event.set()

    def _write_pid_file(self) -> None:
        """Write PID file."""
        self.config.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_path.write_text(str(os.getpid()))
        self._owns_pid_file = True
        log.debug("pid_file_written", path=str(self.config.pid_path))

    def _remove_pid_file(self) -> None:
        """Remove PID file."""
        if self.config.pid_path.exists():
            self.config.pid_path.unlink()
            log.debug("pid_file_removed")

    def _check_already_running(self) -> bool:
        """Check if another leak-hunter daemon owns the PID file.

        A live process with the recorded PID only counts if its command line
        mentions leak-hunter; otherwise the PID file is stale.
        """
        if not self.config.pid_path.exists():
            return False

        try:
            pid = int(self.config.pid_path.read_text().strip())
        except ValueError:
            log.warning("pid_file_invalid", reason="not a number")
            self._remove_pid_file()
            return False

        if pid == os.getpid():
            return False

        try:
            proc = psutil.Process(pid)
            cmdline_str = " ".join(proc.cmdline()).lower()
            if "leak-hunter" in cmdline_str or "leak_hunter" in cmdline_str:
                log.info("daemon_already_running_verified", pid=pid)
                return True
            log.warning(
                "pid_file_stale",
                reason="different process",
                pid=pid,
                actual_process=proc.name(),
            )
            self._remove_pid_file()
            return False
        except psutil.NoSuchProcess:
            log.warning("pid_file_stale", reason="process not found", pid=pid)
            self._remove_pid_file()
            return False
        except psutil.AccessDenied:
            # Can't inspect process - assume it's running to be safe
            log.warning("pid_check_access_denied", pid=pid)
            return True

    async def _auto_prune(self) -> None:
        """Prune old episodes every auto_prune_interval_hours."""
        interval = self.config.system.auto_prune_interval_hours * 3600
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                if self._conn:
                    console.auto_prune_started()
                    deleted = prune_old_episodes(
                        self._conn,
                        episodes_days=self.config.retention.episodes_days,
                    )
                    console.auto_prune_complete(deleted)

    def ingest(self, result: CollectionResult) -> None:
        """Feed one collection pass into the engine.

        Processes the engine knows about that are no longer alive are
        reported as terminated. Processes that merely dropped below the
        collector's memory floor keep their state until they exit.
        """
        for reading in result.readings:
            self.engine.record_sample(
                reading.pid, reading.name, reading.memory_mb, reading.captured_at
            )

        for pid in self.engine.registry.known_pids() - result.live_pids:
            self.engine.process_terminated(pid, result.captured_at)

    def _heartbeat(self) -> None:
        stats = self.engine.stats()
        estimate = self.engine.estimate_time_to_pressure(available_memory_mb())
        console.heartbeat(
            tracked_count=stats.tracked,
            suspect_count=stats.suspects,
            dismissed_count=stats.dismissed,
            hours_to_pressure=estimate.hours,
            rss_mb=own_rss_mb(),
        )
        log.info(
            "heartbeat",
            tracked=stats.tracked,
            suspects=stats.suspects,
            growing=stats.growing,
            samples=stats.samples_recorded,
            rejected=stats.samples_rejected,
            alerts=stats.alerts_sent,
            hours_to_pressure=estimate.hours,
        )

    async def _main_loop(self) -> None:
        """Collect and analyse at the configured interval until shutdown.

        Collection and analysis run in a worker thread so signal handling
        and pruning stay responsive while a pass is in progress.
        """
        heartbeat_every = max(1, self.config.system.heartbeat_samples)

        while not self._shutdown_event.is_set():
            iteration_start = asyncio.get_running_loop().time()
            try:
                result = await asyncio.to_thread(self.collector.collect)
                await asyncio.to_thread(self.ingest, result)
                self.state.update_sample()
                if self.state.sample_count % heartbeat_every == 0:
                    self._heartbeat()
            except asyncio.CancelledError:
                log.info("main_loop_cancelled")
                break
            except Exception as e:
                console.sample_failed(str(e))
                log.exception("sample_failed", error=str(e))

            # Read interval each cycle so reconfiguration takes effect
            interval = self.engine.config.sample_interval
            elapsed = asyncio.get_running_loop().time() - iteration_start
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(), timeout=max(0.0, interval - elapsed)
                )
            except asyncio.TimeoutError:
                pass


async def run_daemon(config: Config | None = None) -> None:
    """Run the daemon until SIGTERM/SIGINT."""
    config = config or Config.load()
    console.configure(config)
    daemon = Daemon(config)
    try:
        await daemon.start()
    finally:
        await daemon.stop()
