"""Rate limiting for rendered output batches."""

import time
from collections.abc import Callable

# Default rate limits
DEFAULT_RATE = 30  # batches per window
REFILL_WINDOW_SECONDS = 1.0


class RateLimiter:
    """Fixed-window token bucket.

    The bucket is refilled to full capacity once a whole window has passed
    since the last refill, so a full burst is always allowed within a window.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_RATE,
        enabled: bool = True,
        window: float = REFILL_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.capacity = capacity
        self.enabled = enabled
        self.window = window
        self._clock = clock
        self.tokens = capacity
        self.last_refill = clock()

    def refill(self) -> None:
        """Refill the bucket if the current window has elapsed."""
        now = self._clock()
        if now - self.last_refill >= self.window:
            self.tokens = self.capacity
            self.last_refill = now

    def can_acquire(self) -> bool:
        """Check whether a token is available without consuming it."""
        if not self.enabled:
            return True
        self.refill()
        return self.tokens > 0

    def consume(self) -> None:
        """Charge one token; the bucket never goes below zero."""
        if self.enabled and self.tokens > 0:
            self.tokens -= 1

    def acquire(self) -> bool:
        """Try to acquire a token.

        Returns:
            True if a token was acquired, False if rate limited.
        """
        if not self.can_acquire():
            return False
        self.consume()
        return True

    def reset(self) -> None:
        self.tokens = self.capacity
        self.last_refill = self._clock()
