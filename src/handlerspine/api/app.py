"""
FastAPI application factory.

``create_app()`` wraps the router built from the handler tree with the
module's middleware, error handling and health endpoint.

The health endpoint lives under ``/_health``: discovery never enumerates
``_``-prefixed files or directories, so no handler can shadow it.

Tags:
    handler-spine, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI

from handlerspine.api.middleware import RequestIDMiddleware, unhandled_exception_handler
from handlerspine.api.schemas import HealthResponse
from handlerspine.context import HandlerContext
from handlerspine.core.settings import ModuleSettings

HEALTH_PATH = "/_health"


def create_app(
    router: APIRouter,
    *,
    settings: ModuleSettings,
    context: HandlerContext | None = None,
    feed_handlers: list[str] | None = None,
    title: str = "handler-spine",
) -> FastAPI:
    """Build a FastAPI application serving *router*.

    Parameters
    ----------
    router : APIRouter
        Router populated by :func:`handlerspine.routes.setup_routes`.
    settings : ModuleSettings
        Module settings; ``debug`` controls error detail exposure.
    context : HandlerContext | None
        Exposed to handlers as ``request.app.state.context``.
    feed_handlers : list[str] | None
        Subscribed feed handler ids, reported by the health endpoint.
    """
    # Starlette's debug page would bypass the problem-detail handler
    app = FastAPI(title=title)

    app.state.settings = settings
    app.state.context = context or HandlerContext(settings=settings)

    # ── Middleware ───────────────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Health ───────────────────────────────────────────────────────
    route_count = len(router.routes)
    handler_ids = list(feed_handlers or [])

    @app.get(HEALTH_PATH, response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(service=title, routes=route_count, feed_handlers=handler_ids)

    # ── Discovered routes ────────────────────────────────────────────
    app.include_router(router)

    return app
