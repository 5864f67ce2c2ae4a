"""Output context owning the queue, renderer, terminal state and cancellation."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TextIO

from .cancellation import CancellationManager, CancellationToken
from .config import Config
from .events import HEALTH_DEGRADED, EventRegistry
from .output import Channel, OutputQueue, Priority, RenderStats
from .render import ProgressiveRenderer, RendererStats
from .terminal import (
    ShutdownHooks,
    TerminalCapabilities,
    TerminalCapabilityState,
    install_shutdown_hooks,
)

logger = logging.getLogger(__name__)

# Health thresholds
MAX_HEALTHY_QUEUE_SIZE = 100
MAX_HEALTHY_DROP_RATIO = 0.05
MAX_HEALTHY_ERRORS = 10

QUEUE_PENALTY = 30
TERMINAL_PENALTY = 20
ERROR_PENALTY = 40


@dataclass(frozen=True)
class QueueHealth:
    queue_size: int
    dropped: int
    is_healthy: bool


@dataclass(frozen=True)
class TerminalHealth:
    ansi_supported: bool
    interactive: bool
    is_healthy: bool


@dataclass(frozen=True)
class ErrorHealth:
    total_errors: int
    in_critical_state: bool
    is_healthy: bool


@dataclass(frozen=True)
class HealthStatus:
    """Aggregated health of an OutputContext."""

    healthy: bool
    queue: QueueHealth
    terminal: TerminalHealth
    errors: ErrorHealth
    score: int
    status: str


@dataclass(frozen=True)
class ContextStats:
    queue: RenderStats
    renderer: RendererStats


def health_status_for(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 40:
        return "degraded"
    return "critical"


class OutputContext:
    """Explicitly constructed owner of the whole output pipeline.

    All components share one EventRegistry, so subscribing on
    `context.events` observes queue, renderer and terminal events alike.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        stdin: TextIO | None = None,
        capabilities: TerminalCapabilities | None = None,
        environ: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the output context.

        Args:
            config: Pipeline configuration. If None, uses defaults.
            stdout: Output stream. If None, uses sys.stdout.
            stderr: Error stream. If None, uses sys.stderr.
            stdin: Input stream for raw mode. If None, uses sys.stdin.
            capabilities: Known terminal capabilities. If None, they are probed.
            environ: Environment used for capability probing.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        self.config = config or Config()
        self.config.validate()
        self.events = EventRegistry()
        self.queue = OutputQueue(
            self.config.queue,
            stdout=stdout,
            stderr=stderr,
            events=self.events,
            clock=clock,
        )
        self.terminal = TerminalCapabilityState(
            stdout=stdout,
            stdin=stdin,
            capabilities=capabilities,
            events=self.events,
            environ=environ,
        )
        self.renderer = ProgressiveRenderer(
            self.queue,
            self.config.renderer,
            events=self.events,
            terminal=self.terminal,
            clock=clock,
        )
        self.cancellation = CancellationManager()

        self._hooks: ShutdownHooks | None = None
        self._health_task: asyncio.Task[None] | None = None
        self._started = False
        self._disposed = False

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the render loop, health monitor and shutdown hooks."""
        if self._disposed:
            raise RuntimeError("OutputContext has been disposed")
        if self._started:
            logger.warning("OutputContext already started")
            return

        await self.queue.start()
        if self.config.install_signal_handlers:
            self._hooks = install_shutdown_hooks(self._shutdown_cleanup)
            self.terminal.watch_resize()
        if self.config.health_check_interval_ms > 0:
            self._health_task = asyncio.create_task(self._health_loop())

        self._started = True
        logger.info("OutputContext started")

    async def reset(self) -> None:
        """Cancel outstanding operations and discard queued output."""
        cancelled = self.cancellation.cancel_all()
        self.cancellation.dispose_all()
        dropped = self.queue.clear()
        self.queue.rate_limiter.reset()
        self.renderer.reset_stats()
        logger.info("OutputContext reset cancelled=%d dropped=%d", cancelled, dropped)

    async def dispose(self) -> None:
        """Flush remaining output and restore the terminal. Safe to call twice."""
        if self._disposed:
            return
        self._disposed = True

        if self._health_task:
            self._health_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._health_task
            self._health_task = None

        self.cancellation.cancel_all()
        self.cancellation.dispose_all()
        await self.queue.close()
        self.terminal.dispose()

        if self._hooks is not None:
            self._hooks.remove_callback(self._shutdown_cleanup)
            self._hooks = None

        self._started = False
        logger.info("OutputContext disposed")

    async def __aenter__(self) -> "OutputContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    # Output

    def write(
        self,
        content: str,
        priority: Priority | str = Priority.NORMAL,
        channel: Channel | str = Channel.STDOUT,
        source: str | None = None,
    ) -> None:
        self.queue.write(content, priority, channel, source)

    def write_line(
        self,
        content: str,
        priority: Priority | str = Priority.NORMAL,
        channel: Channel | str = Channel.STDOUT,
        source: str | None = None,
    ) -> None:
        self.queue.write_line(content, priority, channel, source)

    def write_error(
        self,
        content: str,
        priority: Priority | str = Priority.HIGH,
        source: str | None = None,
    ) -> None:
        self.queue.write_error(content, priority, source)

    async def flush(self) -> None:
        await self.queue.flush()

    async def render(
        self,
        content: str,
        *,
        title: str | None = None,
        max_lines: int | None = None,
        show_more: bool = True,
        priority: Priority | str = Priority.NORMAL,
        token: CancellationToken | None = None,
    ) -> RendererStats:
        return await self.renderer.render(
            content,
            title=title,
            max_lines=max_lines,
            show_more=show_more,
            priority=priority,
            token=token,
        )

    # Cancellation

    def create_token(self, operation_id: str) -> CancellationToken:
        return self.cancellation.create_token(operation_id)

    def cancel(self, operation_id: str) -> bool:
        return self.cancellation.cancel(operation_id)

    def cancel_all(self) -> int:
        return self.cancellation.cancel_all()

    # Health

    def check_health(self) -> HealthStatus:
        """Score queue, terminal and error health from 0 to 100."""
        stats = self.queue.stats()
        terminal = self.terminal.snapshot()

        queue_healthy = (
            stats.current_queue_size < MAX_HEALTHY_QUEUE_SIZE
            and stats.dropped <= stats.total_enqueued * MAX_HEALTHY_DROP_RATIO
        )
        terminal_healthy = terminal.interactive and terminal.ansi_supported
        in_critical_state = self.queue.consecutive_errors > 0
        errors_healthy = not in_critical_state and stats.errors < MAX_HEALTHY_ERRORS

        score = 100
        if not queue_healthy:
            score -= QUEUE_PENALTY
        if not terminal_healthy:
            score -= TERMINAL_PENALTY
        if not errors_healthy:
            score -= ERROR_PENALTY

        return HealthStatus(
            healthy=score >= 70,
            queue=QueueHealth(
                queue_size=stats.current_queue_size,
                dropped=stats.dropped,
                is_healthy=queue_healthy,
            ),
            terminal=TerminalHealth(
                ansi_supported=terminal.ansi_supported,
                interactive=terminal.interactive,
                is_healthy=terminal_healthy,
            ),
            errors=ErrorHealth(
                total_errors=stats.errors,
                in_critical_state=in_critical_state,
                is_healthy=errors_healthy,
            ),
            score=score,
            status=health_status_for(score),
        )

    def run_health_check(self) -> HealthStatus:
        """Check health once, reporting and recovering when degraded."""
        health = self.check_health()
        if health.status in ("degraded", "critical"):
            logger.warning("Output health degraded score=%d status=%s", health.score, health.status)
            self.events.emit(HEALTH_DEGRADED, health)
            if self.config.auto_recover and not health.queue.is_healthy:
                logger.info("Attempting queue recovery queue_size=%d", health.queue.queue_size)
                self.queue.clear()
        return health

    def stats(self) -> ContextStats:
        return ContextStats(queue=self.queue.stats(), renderer=self.renderer.stats())

    # Internals

    async def _health_loop(self) -> None:
        interval = self.config.health_check_interval_ms / 1000
        while True:
            try:
                await asyncio.sleep(interval)
                self.run_health_check()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Health check error: %s", e)

    def _shutdown_cleanup(self) -> None:
        """Synchronous cleanup run by the process shutdown hooks."""
        logger.info("Shutdown cleanup triggered")
        self.cancellation.cancel_all()
        self.queue.drain_now()
        self.terminal.cleanup()
