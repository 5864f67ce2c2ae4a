"""CLI utilities for termflow."""

from .args import parse_args, positive_int
from .display import display_health

__all__ = [
    "parse_args",
    "positive_int",
    "display_health",
]
