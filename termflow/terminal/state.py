"""Terminal state tracking with capability-gated operations.

Every operation returns an OperationResult instead of raising when the
terminal lacks a capability. Operations that change a persistent mode
(alternate screen, raw mode) register a cleanup closure so cleanup() can put
the terminal back the way it was found.
"""

import asyncio
import logging
import signal
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Generic, TextIO, TypeVar

from rich.control import Control, ControlType

from ..events import CLEANUP_COMPLETE, OPERATION_ERROR, RESIZE, ErrorEvent, EventRegistry, Resize
from .capabilities import (
    DEFAULT_HEIGHT,
    TerminalCapabilities,
    clamp_width,
    detect_capabilities,
    probe_size,
)

if sys.platform != "win32":
    import termios
    import tty

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sequences rich's Control does not cover
SAVE_CURSOR = "\x1b7"
RESTORE_CURSOR = "\x1b8"
CLEAR_TO_END = "\x1b[J"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a terminal operation."""

    success: bool
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "OperationResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def unsupported(cls, message: str) -> "OperationResult[T]":
        return cls(success=False, error=RuntimeError(message))


@dataclass(frozen=True)
class TerminalState:
    """Read-only snapshot of the terminal."""

    ansi_supported: bool
    unicode_supported: bool
    interactive: bool
    width: int
    height: int
    cursor_visible: bool = True
    alt_screen_active: bool = False
    raw_mode_active: bool = False


class TerminalCapabilityState:
    """Owns terminal mode changes and restores them on cleanup."""

    def __init__(
        self,
        *,
        stdout: TextIO | None = None,
        stdin: TextIO | None = None,
        capabilities: TerminalCapabilities | None = None,
        events: EventRegistry | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize terminal state.

        Args:
            stdout: Stream escape sequences are written to. Defaults to sys.stdout.
            stdin: Stream raw mode applies to. Defaults to sys.stdin.
            capabilities: Known capabilities. If None, they are probed.
            events: Registry to emit terminal events on.
            environ: Environment used for probing.
        """
        self._stdout = stdout
        self._stdin = stdin
        self.events = events or EventRegistry()

        caps = capabilities or detect_capabilities(stdout, environ)
        self._state = TerminalState(
            ansi_supported=caps.ansi_supported,
            unicode_supported=caps.unicode_supported,
            interactive=caps.interactive,
            width=caps.width,
            height=caps.height,
        )
        self._cleanup_handlers: list[Callable[[], Any]] = []
        self._cursor_saved = False
        self._saved_termios: list[Any] | None = None
        self._resize_mode: str | None = None

        logger.debug("Terminal state initialized state=%s", self._state)

    # Queries

    @property
    def state(self) -> TerminalState:
        return self._state

    def snapshot(self) -> TerminalState:
        return self._state

    def supports_ansi(self) -> bool:
        return self._state.ansi_supported

    def is_interactive(self) -> bool:
        return self._state.interactive

    def dimensions(self) -> tuple[int, int]:
        return self._state.width, self._state.height

    # Cursor

    def hide_cursor(self) -> OperationResult[None]:
        if not self._state.ansi_supported or not self._state.interactive:
            return OperationResult.unsupported("Terminal does not support cursor control")
        if not self._state.cursor_visible:
            return OperationResult.ok()
        return self._apply("hide_cursor", str(Control.show_cursor(False)), cursor_visible=False)

    def show_cursor(self) -> OperationResult[None]:
        if not self._state.ansi_supported or not self._state.interactive:
            return OperationResult.unsupported("Terminal does not support cursor control")
        if self._state.cursor_visible:
            return OperationResult.ok()
        return self._apply("show_cursor", str(Control.show_cursor(True)), cursor_visible=True)

    def save_cursor(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support cursor saving")
        result = self._apply("save_cursor", SAVE_CURSOR)
        if result.success:
            self._cursor_saved = True
        return result

    def restore_cursor(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support cursor restoration")
        if not self._cursor_saved:
            return OperationResult.unsupported("No saved cursor position")
        return self._apply("restore_cursor", RESTORE_CURSOR)

    def move_cursor(self, row: int, column: int) -> OperationResult[None]:
        """Move the cursor to a zero-based (row, column)."""
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support cursor positioning")
        if row < 0 or column < 0:
            return OperationResult.unsupported("Invalid cursor position: negative coordinates")
        if row >= self._state.height or column >= self._state.width:
            logger.warning(
                "Cursor position exceeds terminal row=%d column=%d height=%d width=%d",
                row,
                column,
                self._state.height,
                self._state.width,
            )
        return self._apply("move_cursor", str(Control.move_to(column, row)))

    def move_cursor_up(self, lines: int) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support cursor movement")
        if lines <= 0:
            return OperationResult.ok()
        return self._apply("move_cursor_up", str(Control.move(0, -lines)))

    # Screen

    def clear_screen(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            # Push old content out of view instead
            return self._apply("clear_screen", "\n" * self._state.height)
        return self._apply("clear_screen", str(Control(ControlType.CLEAR, ControlType.HOME)))

    def clear_to_end(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support clearing")
        return self._apply("clear_to_end", CLEAR_TO_END)

    def clear_line(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support clearing")
        return self._apply("clear_line", _erase_line())

    def clear_lines(self, count: int) -> OperationResult[None]:
        """Clear `count` lines above the cursor."""
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support clearing")
        if count <= 0:
            return OperationResult.unsupported("Line count must be positive")
        sequence = (str(Control.move(0, -1)) + _erase_line()) * count
        return self._apply("clear_lines", sequence)

    def write_status(self, text: str) -> OperationResult[None]:
        """Write a transient status line straight to the terminal, bypassing any queue."""
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support status lines")
        return self._apply("write_status", text)

    def enter_alternate_screen(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support alternate screen")
        if self._state.alt_screen_active:
            return OperationResult.ok()
        result = self._apply(
            "enter_alternate_screen", str(Control.alt_screen(True)), alt_screen_active=True
        )
        if result.success:
            self._cleanup_handlers.append(self.exit_alternate_screen)
        return result

    def exit_alternate_screen(self) -> OperationResult[None]:
        if not self._state.ansi_supported:
            return OperationResult.unsupported("Terminal does not support alternate screen")
        if not self._state.alt_screen_active:
            return OperationResult.ok()
        return self._apply(
            "exit_alternate_screen", str(Control.alt_screen(False)), alt_screen_active=False
        )

    # Raw mode

    def enable_raw_mode(self) -> OperationResult[None]:
        if not self._state.interactive:
            return OperationResult.unsupported("Terminal is not interactive")
        if self._state.raw_mode_active:
            return OperationResult.ok()

        stdin = self._stdin or sys.stdin
        if sys.platform == "win32" or not stdin.isatty():
            return OperationResult.unsupported("Raw mode not available")

        try:
            fd = stdin.fileno()
            self._saved_termios = termios.tcgetattr(fd)
            tty.setraw(fd, termios.TCSANOW)
        except (OSError, termios.error) as e:
            return self._operation_failed("enable_raw_mode", e)

        self._state = replace(self._state, raw_mode_active=True)
        self._cleanup_handlers.append(self.disable_raw_mode)
        return OperationResult.ok()

    def disable_raw_mode(self) -> OperationResult[None]:
        if not self._state.raw_mode_active:
            return OperationResult.ok()
        try:
            self._restore_termios()
        except Exception as e:
            return self._operation_failed("disable_raw_mode", e)
        self._state = replace(self._state, raw_mode_active=False)
        return OperationResult.ok()

    # Resize

    def handle_resize(self, width: int | None = None, height: int | None = None) -> Resize:
        """Update cached dimensions and emit a resize event.

        Args:
            width: New column count. If None, the terminal is probed.
            height: New row count. If None, the terminal is probed.
        """
        if width is None or height is None:
            probed_width, probed_height = probe_size(self._stdout)
            width = probed_width if width is None else width
            height = probed_height if height is None else height

        event = Resize(
            old_width=self._state.width,
            old_height=self._state.height,
            new_width=clamp_width(width),
            new_height=height or DEFAULT_HEIGHT,
        )
        self._state = replace(self._state, width=event.new_width, height=event.new_height)
        logger.debug(
            "Terminal resized old=%dx%d new=%dx%d",
            event.old_width,
            event.old_height,
            event.new_width,
            event.new_height,
        )
        self.events.emit(RESIZE, event)
        return event

    def watch_resize(self) -> bool:
        """Route SIGWINCH to handle_resize() where the platform supports it."""
        if not hasattr(signal, "SIGWINCH") or self._resize_mode:
            return False
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGWINCH, self.handle_resize)
            self._resize_mode = "loop"
        except RuntimeError:
            try:
                signal.signal(signal.SIGWINCH, lambda signum, frame: self.handle_resize())
            except ValueError:
                # Not on the main thread
                logger.warning("Cannot watch terminal resize outside the main thread")
                return False
            self._resize_mode = "signal"
        return True

    def unwatch_resize(self) -> None:
        if self._resize_mode == "loop":
            try:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGWINCH)
            except RuntimeError:
                logger.debug("Event loop gone, SIGWINCH handler dropped with it")
        elif self._resize_mode == "signal":
            signal.signal(signal.SIGWINCH, signal.SIG_DFL)
        self._resize_mode = None

    # Cleanup

    def cleanup(self) -> None:
        """Run cleanup closures, then force the terminal back to normal.

        Safe to call any number of times.
        """
        logger.debug("Cleaning up terminal state handlers=%d", len(self._cleanup_handlers))

        handlers, self._cleanup_handlers = self._cleanup_handlers, []
        for handler in handlers:
            try:
                handler()
            except Exception:
                logger.exception("Error in terminal cleanup handler")

        # Restore regardless of what the flags say
        if self._state.ansi_supported:
            try:
                self._write(str(Control.show_cursor(True)) + str(Control.alt_screen(False)))
            except Exception as e:
                logger.error("Failed to restore cursor and screen: %s", e)
        try:
            self._restore_termios()
        except Exception as e:
            logger.error("Failed to restore terminal mode: %s", e)

        self._state = replace(
            self._state,
            cursor_visible=True,
            alt_screen_active=False,
            raw_mode_active=False,
        )
        self.events.emit(CLEANUP_COMPLETE, self._state)

    def dispose(self) -> None:
        self.cleanup()
        self.unwatch_resize()
        logger.debug("Terminal state disposed")

    # Internals

    def _apply(self, operation: str, sequence: str, **changes: Any) -> OperationResult[None]:
        try:
            self._write(sequence)
        except Exception as e:
            return self._operation_failed(operation, e)
        if changes:
            self._state = replace(self._state, **changes)
        return OperationResult.ok()

    def _write(self, sequence: str) -> None:
        stream = self._stdout or sys.stdout
        stream.write(sequence)
        stream.flush()

    def _restore_termios(self) -> None:
        if self._saved_termios is None or sys.platform == "win32":
            return
        stdin = self._stdin or sys.stdin
        saved, self._saved_termios = self._saved_termios, None
        termios.tcsetattr(stdin.fileno(), termios.TCSADRAIN, saved)

    def _operation_failed(self, operation: str, error: Exception) -> OperationResult[None]:
        logger.error("Terminal operation failed operation=%s error=%s", operation, error)
        self.events.emit(OPERATION_ERROR, ErrorEvent(context=operation, error=error))
        return OperationResult(success=False, error=error)


def _erase_line() -> str:
    return str(Control((ControlType.ERASE_IN_LINE, 2)))
