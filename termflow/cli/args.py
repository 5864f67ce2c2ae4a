"""Command line argument parsing."""

import argparse
from collections.abc import Sequence

from termflow import __version__


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace with:
        - path: File to stream (None or "-" reads stdin)
        - title: Header printed before the content
        - max_lines: Maximum number of lines to render
        - chunk_size: Lines per rendered chunk
        - no_rate_limit: Whether to disable the output rate limiter
        - health: Whether to print a health report when done
        - health_port: Port to serve the diagnostics API on
        - verbose: Whether to show debug logs
    """
    parser = argparse.ArgumentParser(
        prog="termflow",
        description="termflow - Paced, prioritized terminal output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="File to stream (default: read standard input)",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="Header shown before the content",
    )
    parser.add_argument(
        "--max-lines",
        type=positive_int,
        default=None,
        help="Render at most this many lines",
    )
    parser.add_argument(
        "--chunk-size",
        type=positive_int,
        default=None,
        help="Lines per rendered chunk",
    )
    parser.add_argument(
        "--no-rate-limit",
        action="store_true",
        help="Disable the output rate limiter",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        help="Print a health report to stderr when done",
    )
    parser.add_argument(
        "--health-port",
        type=positive_int,
        default=None,
        help="Serve /health and /stats on this local port while rendering",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logs",
    )

    return parser.parse_args(argv)
