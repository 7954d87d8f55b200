"""Tests for alert gating."""

from leak_hunter.alerts import AlertGate
from leak_hunter.tracker import SuspectState, Transition

from tests.conftest import make_suspect


def to_suspect(pid: int = 1) -> Transition:
    return Transition(
        old_state=SuspectState.TRACKING,
        new_state=SuspectState.SUSPECT,
        suspect=make_suspect(pid=pid),
    )


def to_tracking(pid: int = 1) -> Transition:
    return Transition(
        old_state=SuspectState.SUSPECT,
        new_state=SuspectState.TRACKING,
        suspect=make_suspect(pid=pid, state=SuspectState.TRACKING),
    )


def test_alert_emitted_on_detection():
    gate = AlertGate()
    received = []
    gate.register(received.append)

    assert gate.handle(to_suspect())

    assert len(received) == 1
    assert gate.sent_count == 1


def test_staying_suspect_does_not_alert():
    gate = AlertGate()
    still_suspect = Transition(
        old_state=SuspectState.SUSPECT,
        new_state=SuspectState.SUSPECT,
        suspect=make_suspect(),
    )

    assert not gate.handle(still_suspect)
    assert gate.sent_count == 0


def test_out_of_order_transitions_do_not_block_later_alerts():
    """A dismissal handled before its detection still lets the next episode alert."""
    gate = AlertGate()
    received = []
    gate.register(received.append)
    dismissed = Transition(
        old_state=SuspectState.SUSPECT,
        new_state=SuspectState.DISMISSED,
        suspect=make_suspect(state=SuspectState.DISMISSED),
    )

    gate.handle(dismissed)
    gate.handle(to_suspect())
    gate.handle(to_suspect())  # re-detected after the cooldown

    assert len(received) == 2


def test_leaving_suspect_rearms_alert():
    gate = AlertGate()
    received = []
    gate.register(received.append)

    gate.handle(to_suspect())
    gate.handle(to_tracking())
    gate.handle(to_suspect())

    assert len(received) == 2


def test_alerts_are_per_process():
    gate = AlertGate()
    received = []
    gate.register(received.append)

    gate.handle(to_suspect(pid=1))
    gate.handle(to_suspect(pid=2))

    assert [s.process_id for s in received] == [1, 2]


def test_non_suspect_transitions_do_not_alert():
    gate = AlertGate()
    received = []
    gate.register(received.append)

    resolved = Transition(
        old_state=SuspectState.TRACKING,
        new_state=SuspectState.RESOLVED,
        suspect=make_suspect(state=SuspectState.RESOLVED),
    )
    assert not gate.handle(resolved)
    assert received == []


def test_callback_failure_is_swallowed():
    """A failing channel does not stop the others or raise."""
    gate = AlertGate()
    received = []

    def broken(_suspect):
        raise ConnectionError("toast service down")

    gate.register(broken)
    gate.register(received.append)

    assert gate.handle(to_suspect())
    assert len(received) == 1
