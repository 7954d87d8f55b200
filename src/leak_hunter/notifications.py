"""Desktop notifications for leak alerts."""

import shutil
import subprocess
import sys

import structlog

from leak_hunter.config import AlertsConfig
from leak_hunter.scoring import Severity
from leak_hunter.tracker import Suspect

log = structlog.get_logger()


def _notification_command(title: str, message: str, sound: bool) -> list[str] | None:
    """Build the platform notification command, or None if unsupported."""
    if sys.platform == "darwin":
        # Text travels as argv so process names never become script source
        sound_part = ' sound name "Funk"' if sound else ""
        return [
            "osascript",
            "-e",
            "on run argv",
            "-e",
            f"display notification (item 1 of argv) with title (item 2 of argv){sound_part}",
            "-e",
            "end run",
            "--",
            message,
            title,
        ]
    if shutil.which("notify-send"):
        return ["notify-send", "--app-name=leak-hunter", "--", title, message]
    return None


def send_notification(title: str, message: str, sound: bool = True) -> bool:
    """Send a desktop notification.

    Args:
        title: Notification title
        message: Notification body
        sound: Whether to play the default sound (macOS only)

    Returns:
        True if notification was sent successfully
    """
    command = _notification_command(title, message, sound)
    if command is None:
        log.debug("notification_unsupported", platform=sys.platform)
        return False

    try:
        subprocess.run(command, capture_output=True, timeout=5)
        log.debug("notification_sent", title=title)
        return True
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        log.warning("notification_failed", error=str(e))
        return False


class Notifier:
    """Alert callback that turns suspects into desktop notifications."""

    def __init__(self, config: AlertsConfig):
        self.config = config
        self._min_rank = Severity(config.min_severity).rank

    def __call__(self, suspect: Suspect) -> None:
        self.leak_detected(suspect)

    def leak_detected(self, suspect: Suspect) -> None:
        """Notify about a newly confirmed leak suspect."""
        if not self.config.enabled:
            return

        if suspect.severity.rank < self._min_rank:
            return

        message = (
            f"{suspect.process_name} (PID {suspect.process_id}) is growing "
            f"{suspect.growth_rate_mb_per_hour:.1f} MB/hour, now {suspect.current_mb:.0f} MB"
        )
        if suspect.periodicity_hours is not None:
            message += f"\nCycles every {suspect.periodicity_hours:.1f}h"

        send_notification(
            title=f"Memory Leak Suspected ({suspect.severity.value})",
            message=message,
            sound=self.config.sound,
        )
