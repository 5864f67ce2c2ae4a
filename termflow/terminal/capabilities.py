"""Terminal capability detection."""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TextIO

from rich.console import Console

MIN_WIDTH = 40
MAX_WIDTH = 200
DEFAULT_HEIGHT = 24


@dataclass(frozen=True)
class TerminalCapabilities:
    """What the attached terminal can do."""

    ansi_supported: bool
    unicode_supported: bool
    interactive: bool
    width: int
    height: int


def clamp_width(width: int) -> int:
    """Keep widths within a range layouts can cope with."""
    return max(MIN_WIDTH, min(MAX_WIDTH, width))


def probe_size(stream: TextIO | None = None) -> tuple[int, int]:
    """Return (columns, rows) as reported for the stream."""
    size = Console(file=stream or sys.stdout).size
    return size.width, size.height or DEFAULT_HEIGHT


def detect_capabilities(
    stream: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> TerminalCapabilities:
    """Probe the terminal behind `stream` (stdout by default).

    Args:
        stream: Output stream to probe.
        environ: Environment to read NO_COLOR/TERM/CI/locale from.

    Returns:
        Detected capabilities.
    """
    env = os.environ if environ is None else environ
    console = Console(file=stream or sys.stdout)

    interactive = console.is_terminal and not env.get("CI")
    ansi = interactive and not env.get("NO_COLOR") and env.get("TERM") != "dumb"
    width, height = probe_size(stream)

    return TerminalCapabilities(
        ansi_supported=bool(ansi),
        unicode_supported=_locale_supports_unicode(env),
        interactive=bool(interactive),
        width=clamp_width(width),
        height=height,
    )


def _locale_supports_unicode(env: Mapping[str, str]) -> bool:
    for name in ("LC_ALL", "LC_CTYPE", "LANG"):
        value = env.get(name)
        if value:
            return "ASCII" not in value.upper()
    return True
