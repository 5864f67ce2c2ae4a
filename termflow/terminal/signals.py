"""Process-wide shutdown hooks.

Exactly one set of handlers is installed per process. Signals, uncaught
exceptions, unhandled asyncio errors and interpreter exit all funnel into the
same cleanup callbacks, which run at most once.
"""

import asyncio
import atexit
import logging
import signal
import sys
from collections.abc import Callable
from types import FrameType, TracebackType
from typing import Any

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)

CleanupCallback = Callable[[], None]


class ShutdownHooks:
    """Run registered cleanup callbacks once when the process goes down."""

    def __init__(self) -> None:
        self._callbacks: list[CleanupCallback] = []
        self._is_shutting_down = False
        self._installed = False
        self._previous_handlers: dict[int, Any] = {}
        self._previous_excepthook: Callable[..., Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_shutting_down(self) -> bool:
        return self._is_shutting_down

    @property
    def installed(self) -> bool:
        return self._installed

    def add_callback(self, callback: CleanupCallback) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove_callback(self, callback: CleanupCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def run_cleanup(self, reason: str) -> bool:
        """Run every callback unless shutdown already started.

        Returns:
            True if this call performed the cleanup.
        """
        if self._is_shutting_down:
            return False
        self._is_shutting_down = True
        logger.info("Running shutdown cleanup reason=%s callbacks=%d", reason, len(self._callbacks))

        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Shutdown callback failed callback=%r", callback)
        return True

    def install(self) -> None:
        """Install signal, excepthook, asyncio and atexit hooks."""
        if self._installed:
            return

        for signum in SHUTDOWN_SIGNALS:
            try:
                self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
            except ValueError:
                # signal.signal only works on the main thread
                logger.warning("Cannot install handler signal=%s outside the main thread", signum)

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._handle_uncaught

        try:
            self._loop = asyncio.get_running_loop()
            self._loop.set_exception_handler(self._handle_loop_error)
        except RuntimeError:
            self._loop = None

        atexit.register(self._handle_exit)
        self._installed = True
        logger.debug("Shutdown hooks installed signals=%s", SHUTDOWN_SIGNALS)

    def uninstall(self) -> None:
        """Restore whatever handlers were in place before install()."""
        if not self._installed:
            return

        for signum, previous in self._previous_handlers.items():
            try:
                signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
            except ValueError:
                logger.warning("Cannot restore handler signal=%s outside the main thread", signum)
        self._previous_handlers.clear()

        if sys.excepthook == self._handle_uncaught and self._previous_excepthook:
            sys.excepthook = self._previous_excepthook
        self._previous_excepthook = None

        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(None)
        self._loop = None

        atexit.unregister(self._handle_exit)
        self._installed = False

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        if not self.run_cleanup(f"signal {signum}"):
            logger.debug("Ignoring signal during shutdown signal=%s", signum)
            return

        previous = self._previous_handlers.get(signum)
        if callable(previous):
            # SIGINT continues as KeyboardInterrupt
            previous(signum, frame)
            return
        if previous == signal.SIG_IGN:
            return
        raise SystemExit(128 + signum)

    def _handle_uncaught(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        logger.error("Uncaught exception: %s", exc)
        self.run_cleanup("uncaught exception")
        if self._previous_excepthook:
            self._previous_excepthook(exc_type, exc, tb)

    def _handle_loop_error(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        logger.error("Unhandled event loop error: %s", context.get("message"))
        self.run_cleanup("unhandled loop error")
        loop.default_exception_handler(context)

    def _handle_exit(self) -> None:
        self.run_cleanup("exit")


# Process-wide hooks instance
_hooks: ShutdownHooks | None = None


def install_shutdown_hooks(callback: CleanupCallback | None = None) -> ShutdownHooks:
    """Install the process-wide hooks (once) and register a callback."""
    global _hooks
    if _hooks is None:
        _hooks = ShutdownHooks()
    _hooks.install()
    if callback is not None:
        _hooks.add_callback(callback)
    return _hooks


def get_shutdown_hooks() -> ShutdownHooks | None:
    return _hooks


def reset_shutdown_hooks() -> None:
    """Uninstall and forget the process-wide hooks (for tests)."""
    global _hooks
    if _hooks is not None:
        _hooks.uninstall()
    _hooks = None
