"""Processors reading their rows from the primary PostgreSQL store."""

from datetime import datetime
from typing import Any, ClassVar, List, Optional

from indexsync.core.datetime_utils import ensure_utc
from indexsync.platform.search_index.context import SearchIndexRunContext
from indexsync.platform.search_index.planning import dedupe_ids
from indexsync.platform.search_index.processor import SearchIndexProcessor
from indexsync.schemas.search_index import FullRange, IdRange, UpdateSet


def to_unix_ms(value: Optional[datetime]) -> Optional[int]:
    """Milliseconds since the epoch, as the search engine sorts and filters on."""
    if value is None:
        return None
    return int(ensure_utc(value).timestamp() * 1000)


class PrimaryStoreProcessor(SearchIndexProcessor):
    """Processor whose rows come from one SQL source keyed by an integer id.

    Subclasses describe the source with ``from_clause`` (aliasing the main
    table as ``t``), ``eligibility`` and ``select_columns``. Rows are asyncpg
    records, read by column name in ``transform_row``.
    """

    from_clause: ClassVar[str]
    select_columns: ClassVar[str]
    # Condition a row must meet to be indexed
    eligibility: ClassVar[str] = "TRUE"
    id_column: ClassVar[str] = "t.id"
    # Column used to find changed rows when no event store type is configured
    updated_at_column: ClassVar[Optional[str]] = None

    def _select(self, condition: str) -> str:
        return (
            f"SELECT {self.select_columns} FROM {self.from_clause} "
            f"WHERE {self.eligibility} AND {condition} ORDER BY {self.id_column}"
        )

    async def discover_range(self, ctx: SearchIndexRunContext) -> IdRange:
        """Bounding query over eligible rows."""
        rows = await self.query(
            ctx,
            f"SELECT MIN({self.id_column}) AS start_id, MAX({self.id_column}) AS end_id "
            f"FROM {self.from_clause} WHERE {self.eligibility}",
        )
        if not rows:
            return IdRange()
        return IdRange(start_id=rows[0]["start_id"], end_id=rows[0]["end_id"])

    async def discover_changed_ids(
        self, ctx: SearchIndexRunContext, since: datetime
    ) -> List[int]:
        """Changed ids from the event store, or from ``updated_at_column``."""
        if self.event_entity_type is not None or self.updated_at_column is None:
            return await super().discover_changed_ids(ctx, since)

        collected: List[int] = []
        high_water = 0
        while not ctx.token.stopped:
            rows = await self.query(
                ctx,
                f"SELECT {self.id_column} AS id FROM {self.from_clause} "
                f"WHERE {self.updated_at_column} > $1 AND {self.id_column} > $2 "
                f"ORDER BY {self.id_column} LIMIT $3",
                since,
                high_water,
                self.read_batch_size,
            )
            if not rows:
                break
            page = [row["id"] for row in rows]
            collected.extend(page)
            high_water = page[-1]
            if len(page) < self.read_batch_size:
                break

        ids = dedupe_ids(collected)
        ctx.logger.info(f"Found {len(ids)} row(s) of {self.name} changed since {since}")
        return ids

    async def pull_range(self, ctx: SearchIndexRunContext, batch: FullRange) -> List[Any]:
        """Eligible rows with id between ``start_id`` and ``end_id``."""
        return await self.query(
            ctx,
            self._select(f"{self.id_column} BETWEEN $1 AND $2"),
            batch.start_id,
            batch.end_id,
        )

    async def pull_ids(self, ctx: SearchIndexRunContext, batch: UpdateSet) -> List[Any]:
        """Eligible rows among ``batch.ids``."""
        return await self.query(
            ctx, self._select(f"{self.id_column} = ANY($1::int[])"), list(batch.ids)
        )
