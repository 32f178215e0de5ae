"""Tests for the EventBus."""

import logging

from models.enums import JobEvent
from worker.events import EventBus


def test_subscribers_called_in_order():
    bus = EventBus()
    calls = []
    bus.subscribe(JobEvent.ADDED, lambda p: calls.append(("first", p)))
    bus.subscribe(JobEvent.ADDED, lambda p: calls.append(("second", p)))

    bus.emit(JobEvent.ADDED, 1)

    assert calls == [("first", 1), ("second", 1)]


def test_only_matching_event_is_delivered():
    bus = EventBus()
    calls = []
    bus.subscribe(JobEvent.FAILED, calls.append)

    bus.emit(JobEvent.COMPLETED, "x")

    assert calls == []


def test_unsubscribe():
    bus = EventBus()
    calls = []
    unsubscribe = bus.subscribe(JobEvent.ADDED, calls.append)
    unsubscribe()
    unsubscribe()  # second call is a no-op

    bus.emit(JobEvent.ADDED, "x")

    assert calls == []
    assert bus.subscriber_count(JobEvent.ADDED) == 0


def test_failing_subscriber_is_contained(caplog):
    bus = EventBus()
    calls = []

    def broken(payload):
        raise ValueError("subscriber bug")

    bus.subscribe(JobEvent.ADDED, broken)
    bus.subscribe(JobEvent.ADDED, calls.append)

    with caplog.at_level(logging.ERROR):
        bus.emit(JobEvent.ADDED, "x")

    assert calls == ["x"]
    assert "subscriber bug" in caplog.text


def test_subscribe_accepts_event_value():
    bus = EventBus()
    calls = []
    bus.subscribe("job:completed", calls.append)

    bus.emit(JobEvent.COMPLETED, "done")

    assert calls == ["done"]
