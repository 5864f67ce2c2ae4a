"""Tests for the event registry."""

from termflow.events import RESIZE, EventRegistry


def test_emit_without_subscribers_is_valid():
    EventRegistry().emit("nobody-listens", 42)


def test_decorator_subscribes_handler():
    events = EventRegistry()
    received: list[object] = []

    @events.on(RESIZE)
    def handle(payload):
        received.append(payload)

    events.emit(RESIZE, "payload")

    assert received == ["payload"]
    assert events.handler_count(RESIZE) == 1


def test_unsubscribe_callable():
    events = EventRegistry()
    received: list[object] = []
    unsubscribe = events.subscribe("tick", received.append)

    events.emit("tick", 1)
    unsubscribe()
    events.emit("tick", 2)

    assert received == [1]


def test_failing_handler_does_not_stop_others():
    events = EventRegistry()
    received: list[object] = []

    def broken(payload):
        raise RuntimeError("boom")

    events.subscribe("tick", broken)
    events.subscribe("tick", received.append)

    events.emit("tick", "x")

    assert received == ["x"]


def test_clear_removes_all_handlers():
    events = EventRegistry()
    events.subscribe("a", print)
    events.subscribe("b", print)

    events.clear()

    assert events.handler_count("a") == 0
    assert events.handler_count("b") == 0
