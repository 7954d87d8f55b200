"""Formatting utilities for consistent CLI output."""

from leak_hunter.projection import TimeEstimate


def format_hours(hours: float) -> str:
    """Compact duration from hours: "45m", "3.5h", "2.1d"."""
    if hours < 1.0:
        return f"{hours * 60:.0f}m"
    if hours < 48.0:
        return f"{hours:.1f}h"
    return f"{hours / 24:.1f}d"


def format_rate(mb_per_hour: float) -> str:
    """Signed growth rate, e.g. "+12.5 MB/h"."""
    return f"{mb_per_hour:+.1f} MB/h"


def format_period(period_hours: float | None) -> str:
    """Dominant period, or "-" when the series is not periodic."""
    if period_hours is None:
        return "-"
    return format_hours(period_hours)


def format_time_estimate(estimate: TimeEstimate) -> str:
    """Time to memory pressure for display."""
    if estimate.hours is None:
        return "unbounded"
    return format_hours(estimate.hours)
