"""Admin endpoints for search index runs."""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from indexsync import schemas
from indexsync.api import deps
from indexsync.core.exceptions import ConfigurationError
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.search_index.config import SyncRunConfig
from indexsync.platform.search_index.registry import IndexRegistry
from indexsync.platform.search_index.runner import IndexSyncRunner

router = APIRouter(dependencies=[Depends(deps.require_admin)])


def _get_runner(registry: IndexRegistry, index_name: str) -> IndexSyncRunner:
    try:
        return registry.get(index_name)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("", response_model=List[schemas.SearchIndexStatus])
async def list_search_indexes(
    registry: IndexRegistry = Depends(deps.get_registry),
) -> List[schemas.SearchIndexStatus]:
    """List registered processors with their cursor and pending intents."""
    return [
        schemas.SearchIndexStatus.model_validate(await runner.status())
        for runner in registry.runners()
    ]


@router.post("/{index_name}/update", response_model=schemas.RunSummary)
async def update_search_index(
    index_name: str,
    config: Optional[SyncRunConfig] = Body(None),
    registry: IndexRegistry = Depends(deps.get_registry),
    token: CancellationToken = Depends(deps.get_cancellation_token),
) -> schemas.RunSummary:
    """Run an incremental update of an index.

    Args:
        index_name: Registry name of the processor
        config: Run configuration (default: intents plus changed ids)
        registry: Index registry
        token: Cancelled when the client disconnects

    Returns:
        Summary of the run

    Raises:
        HTTPException: 404 for unknown names, 409 when a run is already in progress
    """
    runner = _get_runner(registry, index_name)
    return await runner.update(config, token=token)


@router.post("/{index_name}/reset", response_model=schemas.RunSummary)
async def reset_search_index(
    index_name: str,
    registry: IndexRegistry = Depends(deps.get_registry),
    token: CancellationToken = Depends(deps.get_cancellation_token),
) -> schemas.RunSummary:
    """Rebuild an index from scratch and swap it in."""
    runner = _get_runner(registry, index_name)
    return await runner.reset(token=token)


@router.post("/{index_name}/queue", response_model=schemas.QueueUpdateResponse)
async def queue_search_index_update(
    index_name: str,
    body: schemas.QueueUpdateRequest,
    registry: IndexRegistry = Depends(deps.get_registry),
    token: CancellationToken = Depends(deps.get_cancellation_token),
) -> schemas.QueueUpdateResponse:
    """Queue items for the next run, or apply them right away with ``sync``."""
    runner = _get_runner(registry, index_name)
    if body.sync:
        summary = await runner.update_sync(body.items, token=token)
        return schemas.QueueUpdateResponse(summary=summary)

    await registry.queue_update(index_name, body.items)
    return schemas.QueueUpdateResponse(queued=len(body.items))


@router.post("/{index_name}/process-queues", response_model=schemas.RunSummary)
async def process_search_index_queues(
    index_name: str,
    process_updates: bool = Query(True),
    process_deletes: bool = Query(True),
    registry: IndexRegistry = Depends(deps.get_registry),
    token: CancellationToken = Depends(deps.get_cancellation_token),
) -> schemas.RunSummary:
    """Apply the queued intents of an index without discovery."""
    runner = _get_runner(registry, index_name)
    return await runner.process_queues(
        process_updates=process_updates, process_deletes=process_deletes, token=token
    )


@router.get("/{index_name}/data", response_model=List[dict])
async def get_search_index_data(
    index_name: str,
    ids: List[int] = Query(..., description="Entity ids to preview"),
    registry: IndexRegistry = Depends(deps.get_registry),
    token: CancellationToken = Depends(deps.get_cancellation_token),
) -> List[dict]:
    """Return the documents the given ids would be indexed as, without pushing."""
    runner = _get_runner(registry, index_name)
    return await runner.get_data(ids, token=token)
