"""Tests for the foreground portal wait loop."""

import threading

from cli.portal_wait import wait_for_token
from portal.outcome import OutcomeChannel, PortalOutcome


class StubPortal:
    def __init__(self, outcomes=()):
        self.channel = ScriptedChannel(outcomes)
        self.stops = 0

    def stop(self):
        self.stops += 1


class ScriptedChannel(OutcomeChannel):
    """Hands out scripted outcomes one per poll, then nothing"""

    def __init__(self, outcomes):
        super().__init__()
        self.script = list(outcomes)
        self.polls = 0

    def poll(self, timeout=None):
        self.polls += 1
        if self.script:
            return self.script.pop(0)
        return None


class FakeClock:
    def __init__(self, step=1.0):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


def test_returns_token():
    portal = StubPortal([None, PortalOutcome(token="t0ken", provider="github")])

    result = wait_for_token(portal, threading.Event(), timeout=60, interval=0, clock=FakeClock())

    assert result.token == "t0ken"
    assert not result.cancelled and not result.timed_out
    assert portal.stops == 1


def test_errors_are_reported_and_waiting_continues():
    errors = []
    portal = StubPortal([PortalOutcome(error="invalid_state"), PortalOutcome(token="t0ken")])

    result = wait_for_token(portal, threading.Event(), timeout=60, interval=0,
                            on_error=errors.append, clock=FakeClock())

    assert [e.error for e in errors] == ["invalid_state"]
    assert result.token == "t0ken"


def test_cancel():
    cancel = threading.Event()
    cancel.set()
    portal = StubPortal([PortalOutcome(token="t0ken")])

    result = wait_for_token(portal, cancel, timeout=60, interval=0, clock=FakeClock())

    assert result.cancelled
    assert result.token == ""
    assert portal.channel.polls == 0
    assert portal.stops == 1


def test_timeout():
    portal = StubPortal()

    result = wait_for_token(portal, threading.Event(), timeout=5, interval=0, clock=FakeClock())

    assert result.timed_out
    assert portal.stops == 1


def test_keyboard_interrupt_cancels():
    class InterruptingChannel(OutcomeChannel):
        def poll(self, timeout=None):
            raise KeyboardInterrupt

    portal = StubPortal()
    portal.channel = InterruptingChannel()
    cancel = threading.Event()

    result = wait_for_token(portal, cancel, timeout=60, interval=0, clock=FakeClock())

    assert result.cancelled
    assert cancel.is_set()
    assert portal.stops == 1
