"""In-process change notifications for document store collections."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


logger = logging.getLogger(__name__)


class ChangeFeed:
    """Fan-out of "collection changed" signals to live query listeners.

    Each listener owns a queue of size one: a burst of writes while the
    listener is busy re-querying collapses into a single pending signal.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, set[asyncio.Queue[str]]] = defaultdict(set)

    def publish(self, collection: str) -> None:
        """Signal every listener of ``collection`` that its documents changed."""
        for queue in list(self._listeners.get(collection, ())):
            try:
                queue.put_nowait(collection)
            except asyncio.QueueFull:
                # A signal is already pending; the next snapshot covers this write too.
                continue
        logger.debug("change_published", extra={"collection": collection})

    def listener_count(self, collection: str) -> int:
        """Number of active listeners on a collection."""
        return len(self._listeners.get(collection, ()))

    @asynccontextmanager
    async def listen(self, collection: str) -> AsyncIterator[asyncio.Queue[str]]:
        """Register a listener for the lifetime of the context."""
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._listeners[collection].add(queue)
        logger.debug("listener_registered", extra={"collection": collection})
        try:
            yield queue
        finally:
            self._listeners[collection].discard(queue)
            if not self._listeners[collection]:
                del self._listeners[collection]
            logger.debug("listener_released", extra={"collection": collection})


# Global change feed instance
change_feed = ChangeFeed()
