"""Tests for the notifier."""

from bangumoe.notifications import Level, Notifier


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_notifications_expire_after_duration():
    clock = FakeClock()
    notifier = Notifier(3, clock=clock)
    notifier.error("Failed to load collections: boom")

    clock.now = 2.5
    assert [n.level for n in notifier.active()] == [Level.ERROR]
    clock.now = 3.0
    assert notifier.active() == []


def test_history_is_bounded():
    """A notifier nobody drains keeps only the most recent notifications."""
    notifier = Notifier(clock=FakeClock(), history_limit=10)

    for i in range(500):
        notifier.info(f"message {i}")

    assert len(notifier.history) == 10
    drained = notifier.drain()
    assert [n.message for n in drained] == [f"message {i}" for i in range(490, 500)]
    assert notifier.drain() == []
