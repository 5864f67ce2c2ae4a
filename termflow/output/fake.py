"""Fake output stream for testing - nothing reaches a real terminal."""

import logging

logger = logging.getLogger(__name__)


class FakeStream:
    """Text stream double that records every write.

    Several FakeStreams can share one `journal` list to observe the
    interleaving of stdout and stderr writes.
    """

    def __init__(
        self,
        name: str = "stdout",
        journal: list[tuple[str, str]] | None = None,
        tty: bool = False,
    ) -> None:
        self.name = name
        self.writes: list[str] = []
        self.journal = journal if journal is not None else []
        self.flush_count = 0
        self._tty = tty
        self._fail_with: BaseException | None = None

    def write(self, data: str) -> int:
        if self._fail_with is not None:
            raise self._fail_with
        self.writes.append(data)
        self.journal.append((self.name, data))
        return len(data)

    def flush(self) -> None:
        self.flush_count += 1

    def isatty(self) -> bool:
        return self._tty

    # Test helper methods

    def getvalue(self) -> str:
        """Test helper: everything written so far."""
        return "".join(self.writes)

    def fail_with(self, error: BaseException | None) -> None:
        """Test helper: make subsequent writes raise `error` (None to recover)."""
        self._fail_with = error
        logger.debug("Fake stream failure set name=%s error=%r", self.name, error)

    def clear(self) -> None:
        self.writes.clear()
