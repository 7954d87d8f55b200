"""Alert gating: one notification per suspect episode."""

import threading
from collections.abc import Callable

import structlog

from leak_hunter.tracker import Suspect, SuspectState, Transition

log = structlog.get_logger()

AlertCallback = Callable[[Suspect], None]


class AlertGate:
    """Emits one alert per Tracking -> Suspect transition.

    The registry produces that transition once per episode, and its
    hysteresis keeps confidence jitter from re-entering Suspect. The gate
    holds no per-pid state of its own, so transitions delivered out of
    order by concurrent callers cannot suppress a later episode. Delivery
    is best-effort: callback errors are logged and never propagate.
    """

    def __init__(self) -> None:
        self._callbacks: list[AlertCallback] = []
        self._lock = threading.Lock()
        self.sent_count = 0

    def register(self, callback: AlertCallback) -> None:
        """Add a delivery channel (toast, email, ...)."""
        self._callbacks.append(callback)

    def handle(self, transition: Transition) -> bool:
        """Process a registry transition. Returns True if an alert was emitted."""
        if transition.new_state is not SuspectState.SUSPECT:
            return False
        if transition.old_state is SuspectState.SUSPECT:
            return False

        with self._lock:
            self.sent_count += 1

        self._emit(transition.suspect)
        return True

    def _emit(self, suspect: Suspect) -> None:
        for callback in list(self._callbacks):
            try:
                callback(suspect)
            except Exception:
                log.exception(
                    "alert_delivery_failed",
                    pid=suspect.process_id,
                    process=suspect.process_name,
                )
