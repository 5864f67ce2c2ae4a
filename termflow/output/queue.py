"""Priority output queue with admission control and a rate-limited render loop."""

import asyncio
import contextlib
import logging
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import TextIO

from ..config import QueueConfig
from ..events import (
    BATCH_RENDERED,
    BUFFER_CLEARED,
    CRITICAL_RENDERED,
    MESSAGE_DROPPED,
    MESSAGE_QUEUED,
    QUEUE_ERROR,
    BatchRendered,
    ErrorEvent,
    EventRegistry,
)
from .message import Channel, OutputMessage, Priority
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Floor for the render loop tick so a zero interval does not spin the loop
MIN_LOOP_TICK_SECONDS = 0.001


@dataclass
class RenderStats:
    """Counters describing queue activity."""

    total_enqueued: int = 0
    dropped: int = 0
    batches_rendered: int = 0
    avg_batch_size: float = 0.0
    last_render_at: float | None = None
    current_queue_size: int = 0
    errors: int = 0


class OutputQueue:
    """Bounded priority queue that batches writes to stdout/stderr.

    Producers call write() from anywhere on the event loop thread; it never
    blocks and never fails for capacity reasons. A periodic render loop drains
    batches in priority order, one rate-limiter token per batch.
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        *,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        events: EventRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the output queue.

        Args:
            config: Queue settings. If None, uses defaults.
            stdout: Stream for stdout messages. If None, uses sys.stdout at write time.
            stderr: Stream for stderr messages. If None, uses sys.stderr at write time.
            events: Registry to emit queue events on.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        self.config = config or QueueConfig()
        self.config.validate()
        self.events = events or EventRegistry()
        self._stdout = stdout
        self._stderr = stderr
        self._clock = clock
        self.rate_limiter = RateLimiter(
            capacity=self.config.max_outputs_per_second,
            enabled=self.config.rate_limiting,
            clock=clock,
        )

        self._queue: list[OutputMessage] = []
        self._next_id = 0
        self._stats = RenderStats()
        self._last_render_at: float | None = None
        self._consecutive_errors = 0

        self._draining = False
        self._drain_done: asyncio.Future[None] | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._running = False
        self._closed = False

        logger.debug("OutputQueue initialized config=%s", self.config)

    # Producer API

    def write(
        self,
        content: str,
        priority: Priority | str = Priority.NORMAL,
        channel: Channel | str = Channel.STDOUT,
        source: str | None = None,
    ) -> None:
        """Enqueue output. Fire-and-forget."""
        if self._closed or not content:
            return

        try:
            priority = Priority(priority)
            channel = Channel(channel)
            message = OutputMessage(
                id=self._next_id,
                content=content,
                priority=priority,
                created_at=self._clock(),
                channel=channel,
                source=source,
            )
            self._next_id += 1

            if len(self._queue) >= self.config.max_queue_size:
                if priority is Priority.LOW:
                    self._stats.dropped += 1
                    logger.warning(
                        "Dropped low priority message id=%d queue_size=%d",
                        message.id,
                        len(self._queue),
                    )
                    self.events.emit(MESSAGE_DROPPED, message)
                    return
                self._evict_one()

            self._queue.append(message)
            self._stats.total_enqueued += 1
            self.events.emit(MESSAGE_QUEUED, message)

            if priority is Priority.CRITICAL and not self._draining:
                self._render_critical()
        except Exception as e:
            self._handle_error("write", e)

    def write_line(
        self,
        content: str,
        priority: Priority | str = Priority.NORMAL,
        channel: Channel | str = Channel.STDOUT,
        source: str | None = None,
    ) -> None:
        self.write(content + "\n", priority, channel, source)

    def write_error(
        self,
        content: str,
        priority: Priority | str = Priority.HIGH,
        source: str | None = None,
    ) -> None:
        self.write(content, priority, Channel.STDERR, source)

    # Loop control

    async def start(self) -> None:
        """Start the periodic render loop."""
        self._running = True
        self._spawn_loop()
        logger.info("Output render loop started interval_ms=%d", self.config.min_render_interval_ms)

    async def stop(self) -> None:
        """Stop the render loop, letting an in-flight batch finish."""
        self._running = False
        await self._halt_loop()
        logger.info("Output render loop stopped queue_size=%d", len(self._queue))

    async def close(self) -> None:
        """Stop the loop, flush what is queued and refuse further writes."""
        await self.stop()
        try:
            await self.flush()
        except Exception as e:
            logger.error("Failed to flush output on close: %s", e)
        self._closed = True

    async def flush(self) -> None:
        """Write every queued message before returning.

        The render loop is halted while flushing and restarted afterwards.
        Token availability is ignored, but each batch is still charged.
        """
        await self._halt_loop()
        self._begin_drain()
        try:
            while self._queue:
                self._sort_queue()
                await self._render_batch(len(self._queue))
        except Exception as e:
            self._handle_error("flush", e)
            raise
        finally:
            self._end_drain()
            if self._running:
                self._spawn_loop()

    def drain_now(self) -> int:
        """Synchronously write everything queued, bypassing pacing and limits.

        For shutdown paths that cannot await. Write errors are logged and the
        remaining messages are discarded.
        """
        pending = sorted(self._queue, key=lambda m: m.sort_key)
        self._queue.clear()
        if not pending:
            return 0
        try:
            self._write_grouped(pending)
        except Exception as e:
            logger.error("Failed to drain output during shutdown: %s", e)
            self._stats.dropped += len(pending)
            return 0
        return len(pending)

    def clear(self) -> int:
        """Drop everything queued without rendering it."""
        dropped = len(self._queue)
        self._queue.clear()
        self._stats.dropped += dropped
        logger.debug("Output queue cleared dropped=%d", dropped)
        self.events.emit(BUFFER_CLEARED, dropped)
        return dropped

    async def render_next_batch(self) -> bool:
        """Render one batch if the queue, interval and rate limiter allow it.

        Returns:
            True if a batch was written.
        """
        if self._draining or not self._queue:
            return False

        now = self._clock()
        interval = self.config.min_render_interval_ms / 1000
        if self._last_render_at is not None and now - self._last_render_at < interval:
            return False

        if not self.rate_limiter.can_acquire():
            logger.debug("Render deferred by rate limiter queue_size=%d", len(self._queue))
            return False

        self._begin_drain()
        try:
            self._sort_queue()
            await self._render_batch(min(self.config.batch_size, len(self._queue)))
            self._last_render_at = self._clock()
            self._stats.last_render_at = self._last_render_at
        finally:
            self._end_drain()
        return True

    # Introspection

    def stats(self) -> RenderStats:
        return replace(self._stats, current_queue_size=len(self._queue))

    @property
    def messages(self) -> tuple[OutputMessage, ...]:
        return tuple(self._queue)

    @property
    def size(self) -> int:
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    # Internals

    def _spawn_loop(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._render_loop())

    async def _halt_loop(self) -> None:
        # Never cancel the loop mid-batch: a popped batch would be lost.
        while self._draining and self._drain_done is not None:
            await self._drain_done

        if self._loop_task:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

    async def _render_loop(self) -> None:
        """Periodically drain the queue."""
        tick = max(self.config.min_render_interval_ms / 1000, MIN_LOOP_TICK_SECONDS)
        while self._running:
            try:
                await asyncio.sleep(tick)
                await self.render_next_batch()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._handle_error("render-loop", e)

    def _begin_drain(self) -> None:
        self._draining = True
        self._drain_done = asyncio.get_running_loop().create_future()

    def _end_drain(self) -> None:
        self._draining = False
        if self._drain_done is not None and not self._drain_done.done():
            self._drain_done.set_result(None)

    def _sort_queue(self) -> None:
        self._queue.sort(key=lambda m: m.sort_key)

    def _evict_one(self) -> None:
        """Evict the oldest message of the lowest priority present."""
        victim = max(self._queue, key=lambda m: (m.priority.rank, -m.id))
        self._queue.remove(victim)
        self._stats.dropped += 1
        logger.warning(
            "Dropped message to make room id=%d priority=%s",
            victim.id,
            victim.priority.value,
        )
        self.events.emit(MESSAGE_DROPPED, victim)

    def _render_critical(self) -> None:
        critical = [m for m in self._queue if m.priority is Priority.CRITICAL]
        if not critical:
            return
        self._queue = [m for m in self._queue if m.priority is not Priority.CRITICAL]

        for message in sorted(critical, key=lambda m: m.id):
            stream = self._stream(message.channel)
            stream.write(message.content)
            stream.flush()

        self.events.emit(CRITICAL_RENDERED, len(critical))

    async def _render_batch(self, size: int) -> None:
        if size <= 0 or not self._queue:
            return

        batch = self._queue[:size]
        del self._queue[:size]

        if self.config.smooth_scrolling and len(batch) > self.config.scroll_step:
            await self._render_smooth(batch)
        else:
            self._write_grouped(batch)

        self._stats.batches_rendered += 1
        count = self._stats.batches_rendered
        self._stats.avg_batch_size += (len(batch) - self._stats.avg_batch_size) / count
        self._consecutive_errors = 0

        self.rate_limiter.consume()

        logger.debug("Rendered batch size=%d remaining=%d", len(batch), len(self._queue))
        self.events.emit(BATCH_RENDERED, BatchRendered(size=len(batch), remaining=len(self._queue)))

    async def _render_smooth(self, batch: Sequence[OutputMessage]) -> None:
        step = self.config.scroll_step
        delay = self.config.scroll_delay_ms / 1000
        for start in range(0, len(batch), step):
            self._write_grouped(batch[start : start + step])
            if start + step < len(batch):
                await asyncio.sleep(delay)

    def _write_grouped(self, messages: Sequence[OutputMessage]) -> None:
        for channel in (Channel.STDOUT, Channel.STDERR):
            content = "".join(m.content for m in messages if m.channel is channel)
            if content:
                stream = self._stream(channel)
                stream.write(content)
                stream.flush()

    def _stream(self, channel: Channel) -> TextIO:
        if channel is Channel.STDERR:
            return self._stderr or sys.stderr
        return self._stdout or sys.stdout

    def _handle_error(self, context: str, error: BaseException) -> None:
        self._stats.errors += 1
        self._consecutive_errors += 1
        logger.error("Output queue error context=%s error=%s", context, error)
        self.events.emit(QUEUE_ERROR, ErrorEvent(context=context, error=error))

        if self._consecutive_errors >= self.config.max_consecutive_errors:
            logger.error(
                "Too many consecutive output errors count=%d, resetting queue",
                self._consecutive_errors,
            )
            self.clear()
            self._consecutive_errors = 0
