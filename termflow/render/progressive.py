"""Progressive rendering of large text bodies through the output queue."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..cancellation import CancellationError, CancellationToken, sleep
from ..config import RendererConfig
from ..events import (
    CHUNK_RENDERED,
    PAGE_RENDERED,
    RENDER_COMPLETE,
    RENDER_ERROR,
    ChunkRendered,
    ErrorEvent,
    EventRegistry,
    PageRendered,
)
from ..output import OutputQueue, Priority
from ..terminal import TerminalCapabilityState

logger = logging.getLogger(__name__)

# A chunk slower than this halves the next delay
SLOW_CHUNK_SECONDS = 0.1
MIN_ADAPTIVE_DELAY_SECONDS = 0.01
# Runs with more chunks than this show a progress line
PROGRESS_MIN_CHUNKS = 5


@dataclass
class RendererStats:
    total_lines: int = 0
    rendered_lines: int = 0
    chunks_rendered: int = 0
    elapsed: float = 0.0
    average_chunk_time: float = 0.0


class ProgressiveRenderer:
    """Write large content in paced chunks and pages.

    Renders are serialized: a second render() waits until the one in flight
    has finished, so chunks of different bodies never interleave.
    """

    def __init__(
        self,
        queue: OutputQueue,
        config: RendererConfig | None = None,
        *,
        events: EventRegistry | None = None,
        terminal: TerminalCapabilityState | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.queue = queue
        self.terminal = terminal
        self.config = config or RendererConfig()
        self.config.validate()
        self.events = events or queue.events
        self._clock = clock
        self._lock = asyncio.Lock()
        self._stats = RendererStats()
        self._chunk_time_total = 0.0

    @property
    def is_rendering(self) -> bool:
        return self._lock.locked()

    def stats(self) -> RendererStats:
        return RendererStats(**vars(self._stats))

    def reset_stats(self) -> None:
        self._stats = RendererStats()
        self._chunk_time_total = 0.0

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
        """Render content progressively.

        Args:
            content: Text to render; split on newlines.
            title: Optional header written before the body.
            max_lines: Render at most this many lines.
            show_more: Write a notice when lines were hidden by max_lines.
            priority: Priority of the body chunks.
            token: Cancels the pacing sleeps between chunks and pages.

        Returns:
            Statistics for this render.

        Raises:
            CancellationError: If the token fires mid-render.
        """
        if self._lock.locked():
            logger.debug("Render waiting for in-flight render to finish")
        async with self._lock:
            return await self._render(
                content,
                title=title,
                max_lines=max_lines,
                show_more=show_more,
                priority=Priority(priority),
                token=token or CancellationToken.NONE,
            )

    async def _render(
        self,
        content: str,
        *,
        title: str | None,
        max_lines: int | None,
        show_more: bool,
        priority: Priority,
        token: CancellationToken,
    ) -> RendererStats:
        started = self._clock()
        lines = content.split("\n")
        total = len(lines)
        run = RendererStats(total_lines=total)
        chunk_size = self.config.chunk_size
        # Headers never sort behind the body they introduce
        header_priority = min(priority, Priority.HIGH, key=lambda p: p.rank)

        try:
            if total <= chunk_size:
                if title:
                    self.queue.write(f"{title}\n", header_priority)
                self.queue.write(content + "\n", priority)
                await self.queue.flush()
                run.rendered_lines = total
                run.chunks_rendered = 1
            else:
                if title:
                    self.queue.write(f"{title}\nTotal lines: {total}\n\n", header_priority)
                    await self.queue.flush()

                visible = lines
                if max_lines is not None and total > max_lines:
                    visible = lines[:max_lines]

                if self.config.enable_pagination and len(visible) > self.config.page_size:
                    await self._render_pages(visible, priority, header_priority, token, run)
                else:
                    await self._render_chunks(visible, priority, token, run)

                if show_more and len(visible) < total:
                    hidden = total - len(visible)
                    self.queue.write(
                        f"\n{hidden} more lines hidden (showing {len(visible)}/{total})\n",
                        header_priority,
                    )
                    await self.queue.flush()
        except CancellationError:
            logger.debug("Render cancelled rendered_lines=%d", run.rendered_lines)
            raise
        except Exception as e:
            logger.error("Progressive render failed error=%s", e)
            self.events.emit(RENDER_ERROR, ErrorEvent(context="render", error=e))
            raise
        finally:
            run.elapsed = self._clock() - started
            if run.chunks_rendered:
                run.average_chunk_time = run.elapsed / run.chunks_rendered
            self._accumulate(run)

        self.events.emit(RENDER_COMPLETE, run)
        return run

    async def _render_pages(
        self,
        lines: Sequence[str],
        priority: Priority,
        header_priority: Priority,
        token: CancellationToken,
        run: RendererStats,
    ) -> None:
        page_size = self.config.page_size
        pages = [lines[i : i + page_size] for i in range(0, len(lines), page_size)]
        for index, page in enumerate(pages, start=1):
            if len(pages) > 1:
                self.queue.write(f"\n--- Page {index} of {len(pages)} ---\n", header_priority)
            await self._render_chunks(page, priority, token, run)
            self.events.emit(PAGE_RENDERED, PageRendered(page=index, total=len(pages)))

            if index < len(pages):
                self.queue.write("\n[More content...]\n", header_priority)
                await self.queue.flush()
                await sleep(2 * self.config.chunk_delay_ms / 1000, token)

    async def _render_chunks(
        self,
        lines: Sequence[str],
        priority: Priority,
        token: CancellationToken,
        run: RendererStats,
    ) -> None:
        chunk_size = self.config.chunk_size
        base_delay = self.config.chunk_delay_ms / 1000
        chunks = [lines[i : i + chunk_size] for i in range(0, len(lines), chunk_size)]

        for index, chunk in enumerate(chunks, start=1):
            chunk_started = self._clock()
            self.queue.write("\n".join(chunk) + "\n", priority)
            await self.queue.flush()
            chunk_time = self._clock() - chunk_started

            run.rendered_lines += len(chunk)
            run.chunks_rendered += 1
            self._chunk_time_total += chunk_time
            self.events.emit(
                CHUNK_RENDERED, ChunkRendered(chunk=index, total=len(chunks), lines=len(chunk))
            )
            if self.config.show_progress and len(chunks) > PROGRESS_MIN_CHUNKS:
                self._show_progress(index, len(chunks))

            if index < len(chunks):
                delay = base_delay
                if self.config.adaptive and chunk_time > SLOW_CHUNK_SECONDS:
                    delay = max(MIN_ADAPTIVE_DELAY_SECONDS, base_delay / 2)
                    logger.debug("Slow chunk time=%.3f, delay reduced to %.3f", chunk_time, delay)
                await sleep(delay, token)

    def _show_progress(self, current: int, total: int) -> None:
        if self.terminal is None:
            return
        percentage = int(current * 100 / total + 0.5)
        self.terminal.write_status(f"  [Rendering... {percentage}%]\r")

    def _accumulate(self, run: RendererStats) -> None:
        self._stats.total_lines += run.total_lines
        self._stats.rendered_lines += run.rendered_lines
        self._stats.chunks_rendered += run.chunks_rendered
        self._stats.elapsed += run.elapsed
        if self._stats.chunks_rendered:
            self._stats.average_chunk_time = self._chunk_time_total / self._stats.chunks_rendered
