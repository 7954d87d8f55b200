"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (daemon_started, suspect_detected, heartbeat, etc.)
5. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from leak_hunter.config import Config
    from leak_hunter.history import Episode
    from leak_hunter.tracker import Suspect

_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    PRUNE = "🧹"
    HEARTBEAT = "[magenta]♡[/]"
    LEAK = "[bright_red]▲[/]"
    CLEARED = "[bright_green]▼[/]"
    SIGNAL = "⚡"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Styling Helpers
# ─────────────────────────────────────────────────────────────────────────────


def confidence_color(confidence: float) -> str:
    """Return Rich color name for a confidence value."""
    if confidence >= 0.85:
        return "bright_red"
    elif confidence >= 0.6:
        return "bright_yellow"
    return "green"


def _short(name: str) -> str:
    return name[:28] + ".." if len(name) > 28 else name


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def daemon_started() -> None:
    """Log daemon startup complete."""
    info("Daemon started", Icon.OK)


def daemon_stopping() -> None:
    """Log daemon shutdown initiated."""
    info("Daemon stopping...", Icon.WAIT)


def daemon_stopped() -> None:
    """Log daemon shutdown complete."""
    info("Daemon stopped", Icon.OK)


def signal_received(name: str) -> None:
    """Log signal received."""
    info(f"Received [bold]{name}[/]", Icon.SIGNAL)


def suspect_detected(suspect: Suspect) -> None:
    """Log process flagged as a leak suspect."""
    cc = confidence_color(suspect.confidence)
    info(
        f"[cyan]{_short(suspect.process_name)}[/] [dim]({suspect.process_id})[/] "
        f"leaking [bold]{suspect.growth_rate_mb_per_hour:+.1f} MB/h[/], "
        f"confidence [{cc}]{suspect.confidence:.2f}[/]",
        Icon.LEAK,
    )


def episode_closed(episode: Episode) -> None:
    """Log an episode leaving the suspect list."""
    info(
        f"[cyan]{_short(episode.process_name)}[/] [dim]({episode.process_id})[/] "
        f"{episode.resolution.value.replace('_', ' ')} "
        f"[dim]({episode.total_leaked_mb:.0f} MB leaked)[/]",
        Icon.CLEARED,
    )


def heartbeat(
    tracked_count: int,
    suspect_count: int,
    dismissed_count: int,
    hours_to_pressure: float | None,
    rss_mb: float,
) -> None:
    """Log periodic heartbeat stats."""
    pressure = "unbounded" if hours_to_pressure is None else f"{hours_to_pressure:.1f}h"
    info(
        f"[cyan]{tracked_count}[/] tracked, "
        f"[bright_red]{suspect_count}[/] suspects, "
        f"[dim]{dismissed_count} dismissed, pressure in {pressure}, "
        f"{round(rss_mb, 1)}MB RSS[/]",
        Icon.HEARTBEAT,
    )


def auto_prune_started() -> None:
    """Log auto-prune started."""
    info("[dim]Auto-pruning...[/]", Icon.PRUNE)


def auto_prune_complete(episodes_deleted: int) -> None:
    """Log auto-prune complete."""
    info(f"[dim]Pruned {episodes_deleted} episodes[/]")


def sample_failed(error_msg: str) -> None:
    """Log sample collection failed."""
    error(f"Sample failed: {error_msg}", Icon.FAIL)


def already_running(pid: int | None = None) -> None:
    """Log daemon already running error."""
    if pid:
        error(f"Another daemon already running [dim](PID {pid})[/]", Icon.FAIL)
    else:
        error("Another daemon already running", Icon.FAIL)


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]")


def config_summary(window_hours: float, interval_minutes: float, threshold: float) -> None:
    """Log config summary."""
    info(
        f"Config: window=[cyan]{window_hours:g}h[/], every [cyan]{interval_minutes:g}m[/], "
        f"alert≥[cyan]{threshold:.2f}[/]"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog with JSON-lines file output.

    Console output is handled by the Rich helpers above; structlog events
    go to a rotating file for machine parsing. Both use local time.

    Args:
        config: Application config with paths
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("daemon"),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )