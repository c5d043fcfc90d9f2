"""Shared fixtures: stub random sources, a hand-cranked scheduler and an event recorder."""

import pytest

from engine.events import EventBus


class FixedRandom:
    """Random source that always returns the same value.

    ``FixedRandom.for_face(4, 6)`` makes every d6 roll a 4.
    """

    def __init__(self, value: float):
        self.value = value

    @classmethod
    def for_face(cls, face: int, sides: int) -> "FixedRandom":
        return cls((face - 0.5) / sides)

    def random(self) -> float:
        return self.value


class SequenceRandom:
    """Random source that replays a fixed sequence of values, cycling."""

    def __init__(self, values: list[float]):
        self.values = list(values)
        self.index = 0

    @classmethod
    def for_faces(cls, faces: list[tuple[int, int]]) -> "SequenceRandom":
        """Build from ``(face, sides)`` pairs, e.g. ``[(20, 20), (4, 6)]``."""
        return cls([(face - 0.5) / sides for face, sides in faces])

    def random(self) -> float:
        value = self.values[self.index % len(self.values)]
        self.index += 1
        return value


class ManualHandle:
    """A scheduled callback that only runs when the test says so."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose callbacks run only from ``fire_pending()``."""

    def __init__(self):
        self.handles: list[ManualHandle] = []

    def call_later(self, delay, callback):
        handle = ManualHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def fire_pending(self) -> int:
        """Run every callback pending right now. Returns how many ran."""
        due = self.pending
        for handle in due:
            handle.fired = True
            handle.callback()
        return len(due)


class EventRecorder:
    """Subscribes to every event and keeps (name, payload) pairs."""

    def __init__(self, bus: EventBus):
        self.events: list[tuple[str, dict]] = []
        bus.subscribe("*", lambda name, payload: self.events.append((name, payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, name: str) -> int:
        return self.names().count(name)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)
