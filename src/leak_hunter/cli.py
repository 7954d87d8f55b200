"""CLI commands for leak-hunter."""

import click


@click.group()
@click.version_option(package_name="leak-hunter")
def main() -> None:
    """Find processes whose memory keeps growing."""
    pass


@main.command()
def daemon() -> None:
    """Run the background sampler."""
    import asyncio

    from leak_hunter.daemon import run_daemon

    asyncio.run(run_daemon())


@main.command()
@click.option("--samples", "-s", default=12, type=click.IntRange(min=2), help="Samples to take")
@click.option("--interval", "-i", default=5.0, type=click.FloatRange(min=0.1), help="Seconds between samples")
@click.option("--min-growth", default=5.0, type=float, help="Minimum MB grown to flag a process")
def analyze(samples: int, interval: float, min_growth: float) -> None:
    """Run a short sampling burst and report growing processes.

    A burst covers minutes, not hours, so the detection window and
    observation targets are scaled down to the burst length.
    """
    import dataclasses
    import time

    from rich.console import Console
    from rich.table import Table

    from leak_hunter.collector import ProcessCollector, available_memory_mb
    from leak_hunter.config import Config
    from leak_hunter.engine import LeakEngine
    from leak_hunter.formatting import format_period, format_rate, format_time_estimate
    from leak_hunter.scoring import recommendation

    config = Config.load()
    burst_seconds = samples * interval
    engine_config = dataclasses.replace(
        config.detection.to_engine_config(),
        sample_interval=interval,
        window_duration=burst_seconds * 2,
        min_samples_for_trend=min(config.detection.min_samples_for_trend, samples),
        sufficient_observation_hours=burst_seconds / 3600.0,
        min_absolute_growth_mb=min_growth,
    )
    engine = LeakEngine(engine_config)
    collector = ProcessCollector(config.collector)

    click.echo(f"Sampling {samples} times every {interval:g}s...")
    for i in range(samples):
        result = collector.collect()
        for reading in result.readings:
            engine.record_sample(reading.pid, reading.name, reading.memory_mb, reading.captured_at)
        for pid in engine.registry.known_pids() - result.live_pids:
            engine.process_terminated(pid, result.captured_at)
        if i < samples - 1:
            time.sleep(interval)

    stats = engine.stats()
    confirmed = engine.list_suspects(confirmed_only=True)
    console = Console(highlight=False)
    click.echo(f"Monitored {stats.tracked} processes over {burst_seconds:.0f}s\n")

    if confirmed:
        table = Table(title="Suspected memory leaks")
        for column in ("Process", "PID", "Current", "Growth", "Growth %", "Confidence", "Period", "Severity"):
            table.add_column(column)
        for s in confirmed:
            table.add_row(
                s.process_name[:24],
                str(s.process_id),
                f"{s.current_mb:.0f} MB",
                format_rate(s.growth_rate_mb_per_hour),
                f"{s.growth_percent:+.0f}%",
                f"{s.confidence:.2f}",
                format_period(s.periodicity_hours),
                s.severity.value,
            )
        console.print(table)

        click.echo("\nRecommendations:")
        for s in confirmed[:3]:
            click.echo(
                "  - "
                + recommendation(
                    s.process_name, s.severity, s.growth_rate_mb_per_hour, s.growth_percent
                )
            )
        estimate = engine.estimate_time_to_pressure(available_memory_mb())
        click.echo(f"\nTime to memory pressure: {format_time_estimate(estimate)}")
        return

    growing = engine.top_growing(5)
    if growing:
        table = Table(title="No confirmed leaks; fastest-growing processes")
        for column in ("Process", "PID", "Current", "Growth", "Confidence"):
            table.add_column(column)
        for s in growing:
            table.add_row(
                s.process_name[:24],
                str(s.process_id),
                f"{s.current_mb:.0f} MB",
                format_rate(s.growth_rate_mb_per_hour),
                f"{s.confidence:.0%}",
            )
        console.print(table)
    else:
        click.echo("No memory leaks or unusual growth detected.")
    click.echo("\nTip: run the daemon for hours-long observation and better accuracy.")


@main.command()
def status() -> None:
    """Quick health check."""
    import time

    import psutil

    from leak_hunter.config import Config
    from leak_hunter.storage import DatabaseNotAvailable, get_episodes, require_database

    config = Config.load()

    daemon_running = False
    if config.pid_path.exists():
        try:
            daemon_running = psutil.pid_exists(int(config.pid_path.read_text().strip()))
        except ValueError:
            daemon_running = False
    click.echo(f"Daemon: {'running' if daemon_running else 'stopped'}")

    try:
        with require_database(config.db_path) as conn:
            recent = get_episodes(conn, time_cutoff=time.time() - 86400, limit=1000)
            if not recent:
                click.echo("No leak episodes in the last 24 hours.")
                return
            click.echo(f"\nLeak episodes in the last 24 hours: {len(recent)}")
            for episode in recent[:10]:
                click.echo(
                    f"  - {episode.process_name} (PID {episode.process_id}): "
                    f"{episode.resolution.value}, {episode.total_leaked_mb:.0f} MB leaked"
                )
    except DatabaseNotAvailable:
        return


@main.command()
@click.option("--limit", "-n", default=20, help="Number of episodes to show")
@click.option("--hours", "-H", default=None, type=int, help="Only episodes resolved in the last N hours")
@click.option("--format", "-f", "fmt", type=click.Choice(["table", "json", "csv"]), default="table")
def history(limit: int, hours: int | None, fmt: str) -> None:
    """Show resolved leak episodes, most recent first."""
    import csv
    import io
    import json
    import time
    from datetime import datetime

    from leak_hunter.config import Config
    from leak_hunter.formatting import format_hours
    from leak_hunter.storage import DatabaseNotAvailable, get_episodes, require_database

    config = Config.load()

    try:
        with require_database(config.db_path) as conn:
            cutoff = time.time() - hours * 3600 if hours is not None else None
            episodes = get_episodes(conn, time_cutoff=cutoff, limit=limit)

            if not episodes:
                click.echo("No episodes recorded.")
                return

            if fmt == "json":
                data = [
                    {
                        "pid": e.process_id,
                        "process": e.process_name,
                        "detected_at": datetime.fromtimestamp(e.detected_at).isoformat(),
                        "resolved_at": datetime.fromtimestamp(e.resolved_at).isoformat(),
                        "resolution": e.resolution.value,
                        "total_leaked_mb": round(e.total_leaked_mb, 1),
                        "peak_growth_mb_per_hour": round(e.peak_growth_rate_mb_per_hour, 2),
                        "peak_confidence": round(e.peak_confidence, 3),
                    }
                    for e in episodes
                ]
                click.echo(json.dumps(data, indent=2))
            elif fmt == "csv":
                buffer = io.StringIO()
                writer = csv.writer(buffer, lineterminator="\n")
                writer.writerow(
                    ["pid", "process", "detected_at", "resolved_at", "resolution", "total_leaked_mb"]
                )
                for e in episodes:
                    writer.writerow(
                        [
                            e.process_id,
                            e.process_name,
                            datetime.fromtimestamp(e.detected_at).isoformat(),
                            datetime.fromtimestamp(e.resolved_at).isoformat(),
                            e.resolution.value,
                            f"{e.total_leaked_mb:.1f}",
                        ]
                    )
                click.echo(buffer.getvalue(), nl=False)
            else:
                click.echo(
                    f"{'Process':20}  {'PID':>7}  {'Detected':16}  {'Lasted':>7}  "
                    f"{'Leaked':>9}  {'Resolution':15}"
                )
                click.echo("-" * 84)
                for e in episodes:
                    detected = datetime.fromtimestamp(e.detected_at).strftime("%Y-%m-%d %H:%M")
                    lasted = format_hours(e.duration_seconds / 3600.0)
                    click.echo(
                        f"{e.process_name[:20]:20}  {e.process_id:>7}  {detected:16}  "
                        f"{lasted:>7}  {e.total_leaked_mb:>6.0f} MB  {e.resolution.value:15}"
                    )
    except DatabaseNotAvailable:
        return


@main.command()
@click.option("--episodes-days", default=None, type=int, help="Override episode retention days")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
def prune(episodes_days: int | None, dry_run: bool, force: bool) -> None:
    """Delete old leak episodes."""
    from leak_hunter.config import Config
    from leak_hunter.storage import get_connection, prune_old_episodes

    config = Config.load()

    if not config.db_path.exists():
        click.echo("Database not found. Run 'leak-hunter daemon' first.")
        return

    episodes_days = episodes_days or config.retention.episodes_days

    if dry_run:
        click.echo(f"Would prune episodes older than {episodes_days} days")
        return

    if not force:
        click.confirm(f"Delete episodes older than {episodes_days} days?", abort=True)

    conn = get_connection(config.db_path)
    try:
        deleted = prune_old_episodes(conn, episodes_days=episodes_days)
    finally:
        conn.close()

    click.echo(f"Deleted {deleted} episodes")


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from dataclasses import fields

    from leak_hunter.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    for section in ("retention", "system", "detection", "collector", "alerts"):
        values = getattr(cfg, section)
        click.echo()
        click.echo(f"[{section}]")
        for f in fields(values):
            click.echo(f"  {f.name} = {getattr(values, f.name)}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from leak_hunter.config import Config

    cfg = Config.load()

    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from leak_hunter.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
