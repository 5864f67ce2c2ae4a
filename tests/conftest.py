"""Shared fixtures for termflow tests."""

import pytest

from termflow.config import QueueConfig, RendererConfig
from termflow.events import EventRegistry
from termflow.output import FakeStream, OutputQueue
from termflow.terminal import TerminalCapabilities, reset_shutdown_hooks


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """Collects (event, payload) pairs from a registry."""

    def __init__(self, events: EventRegistry, *names: str) -> None:
        self.received: list[tuple[str, object]] = []
        for name in names:
            events.subscribe(name, lambda payload, name=name: self.received.append((name, payload)))

    def payloads(self, name: str) -> list[object]:
        return [payload for event, payload in self.received if event == name]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def journal() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def stdout(journal) -> FakeStream:
    return FakeStream("stdout", journal)


@pytest.fixture
def stderr(journal) -> FakeStream:
    return FakeStream("stderr", journal)


@pytest.fixture
def events() -> EventRegistry:
    return EventRegistry()


@pytest.fixture
def make_queue(stdout, stderr, events, clock):
    """Build an OutputQueue on fake streams; smooth scrolling off unless asked for."""

    def factory(**overrides) -> OutputQueue:
        settings = {"smooth_scrolling": False, "min_render_interval_ms": 50}
        settings.update(overrides)
        return OutputQueue(
            QueueConfig(**settings),
            stdout=stdout,
            stderr=stderr,
            events=events,
            clock=clock,
        )

    return factory


@pytest.fixture
def fast_renderer_config() -> RendererConfig:
    return RendererConfig(chunk_size=5, chunk_delay_ms=0, page_size=100)


@pytest.fixture
def tty_capabilities() -> TerminalCapabilities:
    return TerminalCapabilities(
        ansi_supported=True,
        unicode_supported=True,
        interactive=True,
        width=100,
        height=30,
    )


@pytest.fixture
def plain_capabilities() -> TerminalCapabilities:
    return TerminalCapabilities(
        ansi_supported=False,
        unicode_supported=False,
        interactive=False,
        width=80,
        height=24,
    )


@pytest.fixture(autouse=True)
def _reset_process_hooks():
    yield
    reset_shutdown_hooks()
