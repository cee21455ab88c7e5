"""Tests for cursor stores."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from indexsync.platform.search_index.cursors import InMemoryCursorStore, SqlCursorStore
from indexsync.schemas.search_index import SyncCursor

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_missing_cursor_is_cold():
    """Test that an unknown key yields a never-synced cursor."""
    cursor = await InMemoryCursorStore().get("models", "models")

    assert cursor.last_updated_at is None
    assert cursor.pull_step == 0
    assert cursor.has_pending_range is False


@pytest.mark.asyncio
async def test_last_updated_at_never_moves_backwards():
    """Test that saving an older timestamp keeps the newer one."""
    store = InMemoryCursorStore()
    await store.save(SyncCursor(key="models", index_name="models", last_updated_at=T0))

    saved = await store.save(
        SyncCursor(key="models", index_name="models", last_updated_at=T0 - timedelta(hours=1))
    )

    assert saved.last_updated_at == T0
    assert (await store.get("models", "models")).last_updated_at == T0


@pytest.mark.asyncio
async def test_progress_is_saved_with_timestamp_kept():
    """Test that pull_step progress does not clear the timestamp."""
    store = InMemoryCursorStore()
    await store.save(SyncCursor(key="images", index_name="images", last_updated_at=T0))

    await store.save(
        SyncCursor(
            key="images", index_name="images", pull_step=3, range_start_id=1, range_end_id=900
        )
    )
    cursor = await store.get("images", "images")

    assert cursor.last_updated_at == T0
    assert cursor.pull_step == 3
    assert cursor.has_pending_range is True


@pytest.fixture
def mock_db_context():
    """Mock database context for the SQL cursor store."""
    with patch("indexsync.platform.search_index.cursors.get_db_context") as mock_ctx:
        mock_db = AsyncMock()
        mock_ctx.return_value.__aenter__.return_value = mock_db
        yield mock_db


@pytest.fixture
def mock_crud():
    """Mock CRUD operations."""
    with patch("indexsync.platform.search_index.cursors.crud") as mock:
        yield mock


@pytest.mark.asyncio
async def test_sql_store_upserts_and_commits(mock_db_context, mock_crud):
    """Test that saving goes through the CRUD upsert and commits."""
    row = MagicMock(
        key="metrics_images",
        index_name="images",
        last_updated_at=T0,
        pull_step=0,
        range_start_id=None,
        range_end_id=None,
        range_started_at=None,
    )
    mock_crud.search_index_cursor.upsert = AsyncMock(return_value=row)

    stored = await SqlCursorStore().save(
        SyncCursor(key="metrics_images", index_name="images", last_updated_at=T0)
    )

    assert stored.key == "metrics_images"
    assert stored.last_updated_at == T0
    kwargs = mock_crud.search_index_cursor.upsert.call_args.kwargs
    assert kwargs["key"] == "metrics_images"
    assert kwargs["index_name"] == "images"
    assert kwargs["range_started_at"] is None
    mock_db_context.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_sql_store_missing_row(mock_db_context, mock_crud):
    """Test that a missing row yields a cold cursor."""
    mock_crud.search_index_cursor.get_by_key = AsyncMock(return_value=None)

    cursor = await SqlCursorStore().get("users", "users")

    assert cursor.key == "users"
    assert cursor.last_updated_at is None
