"""Output queueing and rate limiting for termflow."""

from .fake import FakeStream
from .message import Channel, OutputMessage, Priority
from .queue import OutputQueue, RenderStats
from .rate_limiter import RateLimiter

__all__ = [
    "OutputQueue",
    "OutputMessage",
    "RenderStats",
    "Priority",
    "Channel",
    "RateLimiter",
    "FakeStream",
]
