"""
Terminal capability detection and state management.

This package provides:
- Capability probing (ANSI, Unicode, interactivity, dimensions)
- TerminalCapabilityState for capability-gated cursor/screen/raw-mode operations
- ShutdownHooks that restore the terminal on signals and fatal errors
"""

from .capabilities import TerminalCapabilities, clamp_width, detect_capabilities, probe_size
from .signals import (
    ShutdownHooks,
    get_shutdown_hooks,
    install_shutdown_hooks,
    reset_shutdown_hooks,
)
from .state import OperationResult, TerminalCapabilityState, TerminalState

__all__ = [
    # Capabilities
    "TerminalCapabilities",
    "detect_capabilities",
    "probe_size",
    "clamp_width",
    # State
    "TerminalCapabilityState",
    "TerminalState",
    "OperationResult",
    # Shutdown
    "ShutdownHooks",
    "install_shutdown_hooks",
    "get_shutdown_hooks",
    "reset_shutdown_hooks",
]
