"""Incremental discovery of changed entity ids through the event store."""

from datetime import datetime
from typing import List

from indexsync.core.logging import ContextualLogger
from indexsync.platform.clickhouse.client import ClickHouseClient
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.retry_helpers import retry_transient
from indexsync.platform.search_index.planning import dedupe_ids


@retry_transient
async def _read_page(
    event_store: ClickHouseClient,
    *,
    table: str,
    entity_type: str,
    since: datetime,
    after_id: int,
    limit: int,
    token: CancellationToken,
) -> List[int]:
    return await event_store.changed_ids(
        table=table,
        entity_type=entity_type,
        since=since,
        after_id=after_id,
        limit=limit,
        token=token,
    )


async def discover_changed_ids(
    event_store: ClickHouseClient,
    *,
    table: str,
    entity_type: str,
    since: datetime,
    read_batch_size: int,
    token: CancellationToken,
    logger: ContextualLogger,
) -> List[int]:
    """Page through changed ids after ``since`` using a local high-water id.

    Each round reads at most ``read_batch_size`` ids greater than the highest
    id seen so far; discovery ends when a round comes back short.

    Args:
        event_store: ClickHouse client
        table: Event table with entityType, entityId and time columns
        entity_type: Entity type to filter events by
        since: Only events strictly after this time count
        read_batch_size: Ids per round
        token: Cancellation token of the run
        logger: Run logger

    Returns:
        Distinct changed ids in ascending order
    """
    collected: List[int] = []
    high_water = 0
    rounds = 0
    while not token.stopped:
        page = await _read_page(
            event_store,
            table=table,
            entity_type=entity_type,
            since=since,
            after_id=high_water,
            limit=read_batch_size,
            token=token,
        )
        rounds += 1
        if not page:
            break
        collected.extend(page)
        high_water = max(page)
        if len(page) < read_batch_size:
            break

    ids = dedupe_ids(collected)
    logger.info(
        f"Discovered {len(ids)} changed {entity_type} ids since {since.isoformat()} "
        f"in {rounds} round(s)"
    )
    return ids
