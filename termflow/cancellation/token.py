"""Cooperative cancellation tokens."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class CancellationError(Exception):
    """Raised when an operation observes a cancelled token."""

    def __init__(self, message: str = "Operation was cancelled") -> None:
        super().__init__(message)


def is_cancellation_error(exc: BaseException | None) -> bool:
    """Check if an exception signals cancellation."""
    return isinstance(exc, CancellationError)


def _noop() -> None:
    return None


class CancellationToken:
    """Read side of a cancellation source.

    A token flips from not-cancelled to cancelled exactly once. Listeners
    registered before that moment run once, in registration order; listeners
    registered afterwards run immediately.
    """

    NONE: "CancellationToken"
    CANCELLED: "CancellationToken"

    def __init__(self) -> None:
        self._cancelled = False
        self._listeners: list[Listener] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def can_be_cancelled(self) -> bool:
        return True

    def on_cancellation_requested(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Args:
            listener: Zero-argument callable.

        Returns:
            Callable that unregisters the listener (no-op once it has run).
        """
        if self._cancelled:
            listener()
            return _noop

        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def throw_if_cancellation_requested(self) -> None:
        if self._cancelled:
            raise CancellationError()

    def _cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True

        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Cancellation listener failed listener=%r", listener)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} cancelled={self._cancelled}>"


class _NeverCancelledToken(CancellationToken):
    @property
    def can_be_cancelled(self) -> bool:
        return False

    def on_cancellation_requested(self, listener: Listener) -> Callable[[], None]:
        return _noop

    def _cancel(self) -> None:
        return None


class _AlreadyCancelledToken(CancellationToken):
    def __init__(self) -> None:
        super().__init__()
        self._cancelled = True


CancellationToken.NONE = _NeverCancelledToken()
CancellationToken.CANCELLED = _AlreadyCancelledToken()


class CancellationTokenSource:
    """Write side: owns a token and decides when it is cancelled."""

    def __init__(self) -> None:
        self._token = CancellationToken()

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancelled(self) -> bool:
        return self._token.is_cancelled

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        if self._token.is_cancelled:
            return
        logger.debug("Cancellation requested token=%r", self._token)
        self._token._cancel()

    def dispose(self) -> None:
        """Release the source; pending listeners are notified."""
        self.cancel()
