"""Named cancellation handles for tracked operations."""

import logging

from .token import CancellationToken, CancellationTokenSource

logger = logging.getLogger(__name__)


class CancellationManager:
    """Track one cancellation source per operation id."""

    def __init__(self) -> None:
        self._sources: dict[str, CancellationTokenSource] = {}

    def create_token(self, operation_id: str) -> CancellationToken:
        """Create a token for an operation, replacing any previous one.

        A replaced source is cancelled so its holder does not run on
        unsupervised.
        """
        previous = self._sources.pop(operation_id, None)
        if previous is not None:
            logger.warning("Replacing cancellation source operation_id=%s", operation_id)
            previous.cancel()

        source = CancellationTokenSource()
        self._sources[operation_id] = source
        logger.debug(
            "Created cancellation source operation_id=%s active=%d",
            operation_id,
            len(self._sources),
        )
        return source.token

    def cancel(self, operation_id: str) -> bool:
        """Cancel an operation by id.

        Returns:
            True if an operation with that id was tracked.
        """
        source = self._sources.pop(operation_id, None)
        if source is None:
            return False
        source.cancel()
        logger.info("Cancelled operation operation_id=%s", operation_id)
        return True

    def cancel_all(self) -> int:
        """Cancel every tracked operation and return how many there were."""
        sources = list(self._sources.values())
        self._sources.clear()
        for source in sources:
            source.cancel()
        if sources:
            logger.info("Cancelled all operations count=%d", len(sources))
        return len(sources)

    def dispose(self, operation_id: str) -> None:
        """Forget a completed operation."""
        source = self._sources.pop(operation_id, None)
        if source is not None:
            source.dispose()

    def dispose_all(self) -> None:
        for operation_id in list(self._sources):
            self.dispose(operation_id)

    def get_token(self, operation_id: str) -> CancellationToken | None:
        source = self._sources.get(operation_id)
        return source.token if source else None

    @property
    def active_ids(self) -> list[str]:
        return list(self._sources)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)
