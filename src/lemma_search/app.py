"""HTTP boundary: Starlette app serving the search API.

Routes:
    GET /api/search?query=...&site=...&offset=...&limit=...
    GET /health
    GET /metrics

Usage:
    lemma-search
    LEMMA_SEARCH_DATABASE_PATH=/data/index.db python -m lemma_search.app
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
import sqlite3

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from lemma_search.bootstrap import Services, bootstrap
from lemma_search.config import Settings
from lemma_search.exceptions import StorageError
from lemma_search.observability import configure_logging, get_metrics, get_metrics_content_type
from lemma_search.observability.context import update_trace_context
from lemma_search.observability.tracing import TraceContextMiddleware, init_tracing, trace_request


logger = logging.getLogger(__name__)


def _parse_int_param(request: Request, name: str) -> tuple[int | None, JSONResponse | None]:
    raw_value = request.query_params.get(name)
    if raw_value is None or raw_value == "":
        return None, None
    try:
        parsed = int(raw_value)
    except ValueError:
        return None, JSONResponse({"result": False, "error": f"Invalid {name}"}, status_code=400)
    if parsed < 0:
        return None, JSONResponse({"result": False, "error": f"Invalid {name}"}, status_code=400)
    return parsed, None


def create_app(settings: Settings | None = None, *, services: Services | None = None) -> Starlette:
    """Build the ASGI app; ``services`` overrides the SQLite-backed defaults."""
    services = services or bootstrap(settings)

    async def search_endpoint(request: Request) -> JSONResponse:
        update_trace_context(site=request.query_params.get("site"))

        offset, error = _parse_int_param(request, "offset")
        if error:
            return error
        limit, error = _parse_int_param(request, "limit")
        if error:
            return error

        response = await asyncio.to_thread(
            services.search.respond,
            request.query_params.get("query"),
            site_url=request.query_params.get("site") or None,
            offset=offset,
            limit=limit,
        )
        return JSONResponse(response.to_dict())

    async def health_endpoint(_: Request) -> JSONResponse:
        def probe() -> None:
            services.database.connection().execute("SELECT 1").fetchone()

        try:
            await asyncio.to_thread(probe)
        except (sqlite3.Error, StorageError) as exc:
            logger.error("Health check failed: %s", exc)
            return JSONResponse({"status": "unhealthy", "error": str(exc)}, status_code=503)
        return JSONResponse({"status": "healthy"})

    async def metrics_endpoint(_: Request) -> Response:
        return Response(content=get_metrics(), media_type=get_metrics_content_type())

    @asynccontextmanager
    async def lifespan(_: Starlette):
        try:
            yield
        finally:
            services.close()

    routes = [
        Route("/api/search", endpoint=search_endpoint, methods=["GET"]),
        Route("/health", endpoint=health_endpoint, methods=["GET"]),
        Route("/metrics", endpoint=metrics_endpoint, methods=["GET"]),
    ]
    app = Starlette(
        debug=services.settings.log_level.lower() == "debug",
        routes=routes,
        middleware=[
            Middleware(TraceContextMiddleware),
            Middleware(BaseHTTPMiddleware, dispatch=trace_request),
        ],
        lifespan=lifespan,
    )
    app.state.services = services
    return app


def main() -> None:
    """Main entry point for the search server."""
    import uvicorn

    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)
    init_tracing()

    logger.info("Starting lemma search on %s:%d", settings.host, settings.port)
    logger.info("Health check: http://%s:%d/health", settings.host, settings.port)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,  # Don't let uvicorn override our logging config
    )


if __name__ == "__main__":
    main()
