"""Analytical event store client."""

from indexsync.platform.clickhouse.client import ClickHouseClient, create_clickhouse_client

__all__ = ["ClickHouseClient", "create_clickhouse_client"]
