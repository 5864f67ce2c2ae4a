"""
Cooperative cancellation for long-running CLI operations.

This package provides:
- CancellationToken / CancellationTokenSource with the fixed NONE and CANCELLED tokens
- Cancellable sleep, timeout race and retry-with-backoff helpers
- CancellationManager for named operation handles
"""

from .manager import CancellationManager
from .operations import (
    OperationTimeoutError,
    parallel_with_cancellation,
    retry_with_cancellation,
    sleep,
    with_timeout,
)
from .token import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    is_cancellation_error,
)

__all__ = [
    # Tokens
    "CancellationToken",
    "CancellationTokenSource",
    "CancellationError",
    "is_cancellation_error",
    # Operations
    "OperationTimeoutError",
    "sleep",
    "with_timeout",
    "retry_with_cancellation",
    "parallel_with_cancellation",
    # Manager
    "CancellationManager",
]
