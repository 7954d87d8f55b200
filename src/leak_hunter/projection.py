"""First-order projection of time until memory pressure."""

from collections.abc import Iterable
from dataclasses import dataclass

from leak_hunter.tracker import Suspect, SuspectState


@dataclass(frozen=True)
class TimeEstimate:
    """Hours until headroom is consumed; None means unbounded."""

    hours: float | None
    total_rate_mb_per_hour: float

    @property
    def unbounded(self) -> bool:
        return self.hours is None


def estimate_time_to_pressure(suspects: Iterable[Suspect], free_headroom_mb: float) -> TimeEstimate:
    """Divide headroom by the summed growth of confirmed suspects.

    Linear only: leaks that accelerate or slow down are not modelled.
    """
    total_rate = sum(
        s.growth_rate_mb_per_hour for s in suspects if s.state is SuspectState.SUSPECT
    )
    if total_rate <= 0:
        return TimeEstimate(hours=None, total_rate_mb_per_hour=total_rate)
    return TimeEstimate(
        hours=max(0.0, free_headroom_mb) / total_rate,
        total_rate_mb_per_hour=total_rate,
    )
