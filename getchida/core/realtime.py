"""Live query subscriptions over document store collections.

A subscription is a scoped resource: entering ``subscribe()`` registers a
listener on the change feed, leaving it (normally, on error, or on
cancellation) releases the listener.

Usage:
    async with subscribe(collection="chores", filter_query='isCompleted = "false"', sort="dueDate ASC") as snapshots:
        async for chores in snapshots:
            render(chores)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from getchida.core import db_client
from getchida.core.change_feed import change_feed
from getchida.core.config import Constants


logger = logging.getLogger(__name__)

Snapshot = list[dict[str, Any]]


@asynccontextmanager
async def subscribe(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
) -> AsyncIterator[AsyncIterator[Snapshot]]:
    """Subscribe to a live query.

    The yielded iterator produces the current result set immediately, then a
    fresh result set after every change to ``collection``.

    Args:
        collection: Collection to watch
        filter_query: Equality/comparison filter joined with ``&&``
        sort: ``column [ASC|DESC]``

    Raises:
        DatabaseError: If a snapshot query fails (ends the stream)
    """

    async def _query() -> Snapshot:
        return await db_client.list_records(
            collection=collection,
            per_page=Constants.MAX_SNAPSHOT_RECORDS,
            filter_query=filter_query,
            sort=sort,
        )

    async with change_feed.listen(collection) as queue:
        logger.info(
            "subscription_opened",
            extra={"collection": collection, "filter_query": filter_query, "sort": sort},
        )

        async def _snapshots() -> AsyncIterator[Snapshot]:
            yield await _query()
            while True:
                await queue.get()
                yield await _query()

        try:
            yield _snapshots()
        finally:
            logger.info("subscription_closed", extra={"collection": collection})
