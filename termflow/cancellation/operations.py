"""Cancellable sleep, timeout race and retry helpers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from .token import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    is_cancellation_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[CancellationToken], Awaitable[T]]
RetryCallback = Callable[[Exception, int], None]


class OperationTimeoutError(TimeoutError):
    """Raised by with_timeout() when the timer wins the race."""


async def sleep(seconds: float, token: CancellationToken | None = None) -> None:
    """Sleep that wakes up early when the token is cancelled.

    Raises:
        CancellationError: If the token is (or becomes) cancelled.
    """
    token = token or CancellationToken.NONE
    token.throw_if_cancellation_requested()

    loop = asyncio.get_running_loop()
    waiter: asyncio.Future[None] = loop.create_future()

    def wake() -> None:
        if not waiter.done():
            waiter.set_result(None)

    def abort() -> None:
        if not waiter.done():
            waiter.set_exception(CancellationError("Sleep was cancelled"))

    handle = loop.call_later(max(0.0, seconds), wake)
    unregister = token.on_cancellation_requested(abort)
    try:
        await waiter
    finally:
        handle.cancel()
        unregister()


async def with_timeout(
    operation: Operation[T],
    timeout: float,
    message: str | None = None,
) -> T:
    """Race an operation against a timer.

    The operation receives a token that is cancelled when the timer fires.

    Args:
        operation: Coroutine function taking a CancellationToken.
        timeout: Seconds before the operation is abandoned.
        message: Optional timeout error message.

    Raises:
        OperationTimeoutError: If the timer fires first.
    """
    loop = asyncio.get_running_loop()
    source = CancellationTokenSource()
    expired: asyncio.Future[None] = loop.create_future()

    def on_timeout() -> None:
        source.cancel()
        if not expired.done():
            expired.set_result(None)

    timer = loop.call_later(timeout, on_timeout)
    task = asyncio.ensure_future(operation(source.token))
    try:
        await asyncio.wait({task, expired}, return_when=asyncio.FIRST_COMPLETED)
        if not expired.done():
            return task.result()
        if task.done() and not task.cancelled():
            # Token-aware operations settle with the timer; their error is superseded
            task.exception()
        logger.debug("Operation timed out timeout=%.3f", timeout)
        raise OperationTimeoutError(message or f"Operation timed out after {timeout * 1000:.0f}ms")
    finally:
        timer.cancel()
        source.dispose()
        if not task.done():
            task.cancel()
        if not expired.done():
            expired.cancel()


async def retry_with_cancellation(
    operation: Operation[T],
    *,
    max_retries: int,
    delay: float,
    backoff: bool = True,
    token: CancellationToken | None = None,
    on_retry: RetryCallback | None = None,
) -> T:
    """Run an operation, retrying ordinary failures with optional backoff.

    Args:
        operation: Coroutine function taking a CancellationToken.
        max_retries: Retries after the first attempt.
        delay: Base delay in seconds between attempts.
        backoff: Double the delay after every failed attempt.
        token: Cancellation token checked before every attempt and during sleeps.
        on_retry: Called with (error, attempt number) before each backoff sleep.

    Returns:
        The operation's result.

    Raises:
        CancellationError: As soon as cancellation is observed.
        ValueError: If max_retries is negative.
        Exception: The last failure once retries are exhausted.
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be non-negative, got {max_retries}")
    token = token or CancellationToken.NONE
    last_error: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            token.throw_if_cancellation_requested()
            return await operation(token)
        except Exception as exc:
            if is_cancellation_error(exc):
                raise
            last_error = exc

            if attempt < max_retries:
                wait = delay * 2**attempt if backoff else delay
                logger.debug(
                    "Retrying attempt=%d max_retries=%d delay=%.3f error=%s",
                    attempt + 1,
                    max_retries,
                    wait,
                    exc,
                )
                if on_retry:
                    on_retry(exc, attempt + 1)
                await sleep(wait, token)

    raise last_error  # type: ignore[misc]


async def parallel_with_cancellation(
    operations: Sequence[Operation[T]],
    token: CancellationToken | None = None,
) -> list[T]:
    """Run operations concurrently with a shared token."""
    token = token or CancellationToken.NONE
    token.throw_if_cancellation_requested()
    return list(await asyncio.gather(*(operation(token) for operation in operations)))
