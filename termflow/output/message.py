"""Output message model."""

from dataclasses import dataclass
from enum import Enum


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank; lower drains first."""
        return _RANKS[self]


_RANKS = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}


class Channel(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class OutputMessage:
    """A queued piece of output."""

    id: int
    content: str
    priority: Priority
    created_at: float
    channel: Channel = Channel.STDOUT
    source: str | None = None

    @property
    def sort_key(self) -> tuple[int, float, int]:
        return (self.priority.rank, self.created_at, self.id)
