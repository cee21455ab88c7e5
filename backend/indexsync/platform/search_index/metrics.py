"""Prometheus metrics for search index runs."""

from contextlib import asynccontextmanager

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

# Separate registry so the sync engine's metrics can be exposed on their own
search_index_registry = CollectorRegistry()

documents_pushed = Counter(
    "indexsync_documents_pushed_total",
    "Documents upserted into the search engine",
    ["index_name"],
    registry=search_index_registry,
)

documents_deleted = Counter(
    "indexsync_documents_deleted_total",
    "Documents deleted from the search engine",
    ["index_name"],
    registry=search_index_registry,
)

batches_failed = Counter(
    "indexsync_batches_failed_total",
    "Batches whose pull, transform or push failed",
    ["index_name"],
    registry=search_index_registry,
)

rows_skipped = Counter(
    "indexsync_rows_skipped_total",
    "Rows skipped because they could not be transformed",
    ["index_name"],
    registry=search_index_registry,
)

intents_drained = Counter(
    "indexsync_intents_drained_total",
    "Update intents consumed from the queue",
    ["index_name"],
    registry=search_index_registry,
)

batches_in_flight = Gauge(
    "indexsync_batches_in_flight",
    "Batches currently between pull and push",
    ["index_name"],
    registry=search_index_registry,
)

runs_in_progress = Gauge(
    "indexsync_runs_in_progress",
    "Runs currently executing",
    ["index_name", "mode"],
    registry=search_index_registry,
)

last_success_timestamp = Gauge(
    "indexsync_last_success_timestamp_seconds",
    "Start time of the last run whose batches all succeeded",
    ["index_name"],
    registry=search_index_registry,
)


@asynccontextmanager
async def track_run(index_name: str, mode: str):
    """Count a run as in progress for the duration of the block."""
    gauge = runs_in_progress.labels(index_name=index_name, mode=mode)
    gauge.inc()
    try:
        yield
    finally:
        gauge.dec()


@asynccontextmanager
async def track_batch(index_name: str):
    """Count a batch as in flight for the duration of the block."""
    gauge = batches_in_flight.labels(index_name=index_name)
    gauge.inc()
    try:
        yield
    finally:
        gauge.dec()


def render_metrics() -> bytes:
    """Render the registry in the Prometheus text format."""
    return generate_latest(search_index_registry)
