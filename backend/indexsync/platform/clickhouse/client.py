"""ClickHouse client over the HTTP interface.

Every query gets a ``query_id`` so it can be killed on the server with
``KILL QUERY`` when the job that issued it is cancelled. Parameters use
ClickHouse's server-side binding (``{name:Type}`` placeholders plus
``param_<name>`` URL parameters); values are never interpolated into SQL.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

import httpx

from indexsync.core.config import settings
from indexsync.core.datetime_utils import ensure_utc
from indexsync.core.exceptions import TransientStoreError
from indexsync.core.logging import ContextualLogger, logger as default_logger
from indexsync.platform.concurrency.cancellable import CancellableQuery, run_cancellable
from indexsync.platform.concurrency.cancellation import CancellationToken

Row = Dict[str, Any]


class ClickHouseClient:
    """Read-only ClickHouse client with cancellable queries."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        database: str = "default",
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the client.

        Args:
            http_client: httpx client whose base_url points at the HTTP interface
            database: Database queries run against
            logger: Optional contextual logger
        """
        self._http = http_client
        self.database = database
        self.logger = logger or default_logger

    def execute(
        self, query: str, params: Optional[Dict[str, Any]] = None
    ) -> CancellableQuery[List[Row]]:
        """Start ``query`` and return a cancellable handle for its rows.

        Args:
            query: SQL without a FORMAT clause
            params: Values for ``{name:Type}`` placeholders

        Returns:
            Handle resolving to a list of row dicts
        """
        query_id = f"indexsync-{uuid4()}"

        async def run() -> List[Row]:
            return await self._post(f"{query}\nFORMAT JSON", query_id, params)

        async def abort() -> None:
            await self._post(
                "KILL QUERY WHERE query_id = {query_id:String} ASYNC",
                f"{query_id}-kill",
                {"query_id": query_id},
                expect_rows=False,
            )
            self.logger.debug(f"Killed ClickHouse query {query_id}")

        return CancellableQuery(run, abort, label=f"clickhouse query {query_id}")

    async def changed_ids(
        self,
        *,
        table: str,
        entity_type: str,
        since: datetime,
        after_id: int,
        limit: int,
        token: Optional[CancellationToken] = None,
    ) -> List[int]:
        """Return up to ``limit`` distinct entity ids with events after ``since``.

        Ids are ordered ascending and strictly greater than ``after_id`` so the
        caller can page with a high-water mark.
        """
        query = self.execute(
            f"""
            SELECT DISTINCT entityId
            FROM {table}
            WHERE entityType = {{entity_type:String}}
              AND time > {{since:DateTime64(3, 'UTC')}}
              AND entityId > {{after_id:Int64}}
            ORDER BY entityId
            LIMIT {{limit:UInt32}}
            """,
            {
                "entity_type": entity_type,
                "since": ensure_utc(since).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
                "after_id": after_id,
                "limit": limit,
            },
        )
        rows = await run_cancellable(query, token)
        return [int(row["entityId"]) for row in rows]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def _post(
        self,
        sql: str,
        query_id: str,
        params: Optional[Dict[str, Any]],
        expect_rows: bool = True,
    ) -> List[Row]:
        request_params: Dict[str, Any] = {"database": self.database, "query_id": query_id}
        for name, value in (params or {}).items():
            request_params[f"param_{name}"] = value

        try:
            response = await self._http.post("/", params=request_params, content=sql)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429 or status >= 500:
                raise TransientStoreError(
                    f"ClickHouse returned {status}: {e.response.text[:200]}", store="clickhouse"
                ) from e
            raise
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientStoreError(f"ClickHouse request failed: {e}", store="clickhouse") from e

        if not expect_rows:
            return []
        return response.json().get("data", [])


def create_clickhouse_client() -> Optional[ClickHouseClient]:
    """Build the client from settings, or None when the event store is not configured."""
    if not settings.CLICKHOUSE_URL:
        return None
    http_client = httpx.AsyncClient(
        base_url=settings.CLICKHOUSE_URL,
        auth=(settings.CLICKHOUSE_USER, settings.CLICKHOUSE_PASSWORD),
        timeout=httpx.Timeout(settings.CLICKHOUSE_TIMEOUT_SECONDS, connect=10.0),
    )
    return ClickHouseClient(http_client, database=settings.CLICKHOUSE_DATABASE)
