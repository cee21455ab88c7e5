"""FastAPI application serving the search index admin API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from indexsync.api.v1.endpoints import search_index
from indexsync.core.config import settings
from indexsync.core.exceptions import ConfigurationError, NotConfiguredError
from indexsync.core.logging import logger
from indexsync.core.redis_client import redis_client
from indexsync.db.pg import pg_pool
from indexsync.platform.search_index.exceptions import IndexBusyError
from indexsync.platform.search_index.factory import SearchIndexFactory
from indexsync.platform.search_index.metrics import render_metrics


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the index registry on startup and close shared clients on shutdown."""
    deps = SearchIndexFactory.create_dependencies()
    app.state.registry = SearchIndexFactory.create_registry(deps)
    logger.info(f"{settings.PROJECT_NAME} started")
    try:
        yield
    finally:
        if deps.event_store is not None:
            await deps.event_store.close()
        await pg_pool.close()
        await redis_client.close()
        logger.info(f"{settings.PROJECT_NAME} stopped")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create the application.

    Args:
        use_lifespan: Build the registry from settings on startup; tests turn
            this off and set ``app.state.registry`` themselves
    """
    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan if use_lifespan else None)
    app.include_router(
        search_index.router, prefix="/admin/search-index", tags=["search-index"]
    )

    @app.exception_handler(IndexBusyError)
    async def index_busy_handler(request: Request, exc: IndexBusyError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(NotConfiguredError)
    async def not_configured_handler(request: Request, exc: NotConfiguredError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=render_metrics(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
