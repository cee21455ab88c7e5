"""Tests for the platform's search index processors."""

from datetime import datetime, timedelta, timezone
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.search_index.exceptions import MalformedRowError
from indexsync.platform.search_index.factory import SearchIndexFactory
from indexsync.platform.search_index.indexes import (
    DEFAULT_PROCESSORS,
    ImagesProcessor,
    MetricsImagesProcessor,
    ModelsProcessor,
    UsersProcessor,
)
from indexsync.platform.search_index.indexes._base import to_unix_ms
from indexsync.platform.search_index.indexes.images import ImageTags
from indexsync.platform.search_index.runner import IndexSyncRunner
from indexsync.schemas.search_index import QueueItem, SyncCursor

CREATED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _model(model_id: int) -> dict:
    return {
        "id": model_id,
        "name": "Dreamy",
        "type": "Checkpoint",
        "nsfw": 0,
        "userId": 3,
        "username": "ann",
        "tags": ["portrait", "anime"],
        "createdAt": CREATED,
        "lastVersionAt": None,
    }


def _image(image_id: int, url: Any = "https://img/x.jpeg") -> dict:
    return {
        "id": image_id,
        "url": url,
        "type": "image",
        "width": 512,
        "height": 768,
        "nsfwLevel": 1,
        "userId": 7,
        "postId": 70,
        "prompt": None,
        "hasMeta": False,
        "sortAt": CREATED,
    }


def test_to_unix_ms():
    """Test conversion to epoch milliseconds."""
    assert to_unix_ms(CREATED) == 1704164645000
    assert to_unix_ms(datetime(2024, 1, 2, 3, 4, 5)) == 1704164645000
    assert to_unix_ms(None) is None


def test_models_transform():
    """Test that a model row becomes a document with sorted tags."""
    document = ModelsProcessor().transform_row(_model(1))

    assert document["tags"] == ["anime", "portrait"]
    assert document["nsfw"] is False
    assert document["createdAt"] == 1704164645000
    assert document["lastVersionAt"] is None


def test_models_without_name_are_malformed():
    """Test that a model without a name cannot be indexed."""
    with pytest.raises(MalformedRowError) as exc_info:
        ModelsProcessor().transform_row({"id": 9, "name": ""})

    assert exc_info.value.entity_id == 9


def test_users_transform_nests_metrics():
    """Test that user counters are nested under metrics."""
    document = UsersProcessor().transform_row(
        {
            "id": 4,
            "username": "bob",
            "image": None,
            "createdAt": CREATED,
            "followerCount": 12,
            "uploadCount": 3,
        }
    )

    assert document["metrics"] == {"followerCount": 12, "uploadCount": 3}


def test_metrics_images_is_partial_processor_of_images():
    """Test that the metrics processor shares the images index under its own cursor."""
    processor = MetricsImagesProcessor()

    assert processor.index_name == ImagesProcessor.index_name
    assert processor.partial is True
    assert processor.name == "metrics_images"
    assert processor.cursor_key == "metrics_images"
    assert ImagesProcessor().cursor_key == "images"
    assert processor.index_settings == ImagesProcessor.index_settings


def test_metrics_images_defaults_counters():
    """Test that missing counters are pushed as zero."""
    document = MetricsImagesProcessor().transform_row(
        {"id": 5, "reactionCount": None, "commentCount": 2, "collectedCount": None}
    )

    assert document == {"id": 5, "reactionCount": 0, "commentCount": 2, "collectedCount": 0}


@pytest.mark.asyncio
async def test_images_pull_rows_then_tags(make_deps, fake_executor_class):
    """Test that image batches are pulled in two rounds."""

    def handler(query: str, *args: Any) -> List[Any]:
        if "TagsOnImage" in query:
            return [{"id": 1, "tags": ["cat", "hat"]}]
        return [_image(1), _image(2, url=None), _image(3)]

    executor = fake_executor_class(handler)
    runner = IndexSyncRunner(ImagesProcessor(), make_deps(executor))

    documents = await runner.get_data([1, 2, 3], token=CancellationToken())

    assert [d["id"] for d in documents] == [1, 3, 1]
    assert documents[0]["sortAt"] == CREATED.isoformat()
    assert documents[0]["prompt"] == ""
    assert documents[2] == {"id": 1, "tags": ["cat", "hat"]}
    tags_query, tags_args = executor.calls[1]
    assert "TagsOnImage" in tags_query
    assert tags_args == ([1, 3],)


def test_image_tags_transform():
    """Test that the tags round yields partial documents."""
    assert ImagesProcessor().transform_row(ImageTags(id=3, tags=["a"])) == {
        "id": 3,
        "tags": ["a"],
    }


@pytest.mark.asyncio
async def test_primary_store_queries(make_deps, fake_executor_class, rows_handler):
    """Test that id pulls filter by eligibility and id."""
    executor = fake_executor_class(rows_handler([_model(2)]))
    runner = IndexSyncRunner(ModelsProcessor(), make_deps(executor))

    documents = await runner.get_data([2])

    assert [d["id"] for d in documents] == [2]
    query, args = executor.calls[0]
    assert "ANY($1::int[])" in query
    assert "t.status = 'Published'" in query
    assert args == ([2],)


@pytest.mark.asyncio
async def test_updated_at_discovery_pages(make_deps, fake_executor_class):
    """Test that processors without an event type page over their updated-at column."""
    pages = [[{"id": 1}, {"id": 2}], [{"id": 5}]]

    def handler(query: str, *args: Any) -> List[Any]:
        return pages.pop(0)

    executor = fake_executor_class(handler)
    processor = ModelsProcessor()
    processor.read_batch_size = 2
    runner = IndexSyncRunner(processor, make_deps(executor))
    ctx = runner._new_context(CancellationToken(), processor.index_name, CREATED)

    ids = await processor.discover_changed_ids(ctx, CREATED)

    assert ids == [1, 2, 5]
    assert [args[1] for _, args in executor.calls] == [0, 2]
    assert 't."updatedAt" > $1' in executor.calls[0][0]


def test_factory_registers_every_index(make_deps, fake_executor_class, rows_handler):
    """Test that the factory builds one runner per platform processor."""
    deps = make_deps(fake_executor_class(rows_handler([])))

    registry = SearchIndexFactory.create_registry(deps=deps)

    assert [r.name for r in registry.runners()] == sorted(
        p().name for p in DEFAULT_PROCESSORS
    )
    assert registry.get("metrics_images").processor.index_name == "images"


def _user(user_id: int, created_at: datetime) -> dict:
    return {
        "id": user_id,
        "username": f"user{user_id}",
        "image": None,
        "createdAt": created_at,
        "followerCount": 0,
        "uploadCount": 0,
    }


@pytest.mark.asyncio
async def test_images_skip_tags_of_malformed_rows(make_deps, fake_executor_class, destination):
    """Test that an image without url gets no tags document of its own."""

    def handler(query: str, *args: Any) -> List[Any]:
        if "TagsOnImage" in query:
            return [{"id": i, "tags": ["cat"]} for i in args[0]]
        return [_image(1, url=None), _image(2)]

    executor = fake_executor_class(handler)
    runner = IndexSyncRunner(ImagesProcessor(), make_deps(executor))

    summary = await runner.update_sync([QueueItem(id=1), QueueItem(id=2)])

    assert [args for query, args in executor.calls if "TagsOnImage" in query] == [([2],)]
    assert set(destination.indexes["images"]) == {2}
    assert destination.indexes["images"][2]["tags"] == ["cat"]
    assert summary.rows_skipped == 1


@pytest.mark.asyncio
async def test_metrics_images_only_patch_eligible_images(
    make_deps, fake_executor_class, destination, cursor_store
):
    """Test that metric events for unscanned images create no documents."""
    await cursor_store.save(
        SyncCursor(
            key="metrics_images",
            index_name="images",
            last_updated_at=CREATED,
        )
    )
    metric_rows = [
        {"id": 1, "reactionCount": 4, "commentCount": 1, "collectedCount": 0},
        {"id": 42, "reactionCount": 9, "commentCount": 0, "collectedCount": 2},
    ]
    scanned = {1}

    def handler(query: str, *args: Any) -> List[Any]:
        if "ANY(" not in query:
            return []
        rows = [row for row in metric_rows if row["id"] in set(args[0])]
        if '"Image" i' in query and "i.ingestion = 'Scanned'" in query:
            rows = [row for row in rows if row["id"] in scanned]
        return rows

    event_store = MagicMock()
    event_store.changed_ids = AsyncMock(return_value=[1, 42])
    executor = fake_executor_class(handler)
    runner = IndexSyncRunner(
        MetricsImagesProcessor(), make_deps(executor, event_store=event_store)
    )

    summary = await runner.update()

    assert summary.succeeded is True
    assert destination.indexes["images"] == {
        1: {"id": 1, "reactionCount": 4, "commentCount": 1, "collectedCount": 0}
    }


@pytest.mark.asyncio
async def test_users_warm_run_picks_up_new_users(
    make_deps, fake_executor_class, rows_handler, destination
):
    """Test that a user created after the last run is indexed by the next one."""
    rows = [_user(1, CREATED)]
    serve_table = rows_handler(rows)

    def handler(query: str, *args: Any) -> List[Any]:
        if '"createdAt" > $1' in query:
            since, after_id, limit = args
            return [
                {"id": row["id"]}
                for row in rows
                if row["createdAt"] > since and row["id"] > after_id
            ][:limit]
        return serve_table(query, *args)

    executor = fake_executor_class(handler)
    runner = IndexSyncRunner(UsersProcessor(), make_deps(executor))

    first = await runner.update()
    assert set(destination.indexes["users"]) == {1}

    rows.append(_user(2, first.started_at + timedelta(seconds=1)))
    second = await runner.update()

    assert second.succeeded is True
    assert set(destination.indexes["users"]) == {1, 2}
    assert destination.indexes["users"][2]["username"] == "user2"
