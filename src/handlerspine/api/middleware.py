"""
Request-ID middleware and the catch-all error handler.

Manifesto:
    Every request gets a unique ID so handler logs and error reports can be
    correlated; handler exceptions never leak tracebacks to clients.

Tags:
    handler-spine, api, middleware, request-id, rfc7807
"""

from __future__ import annotations

import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from handlerspine.api.schemas import ProblemDetail
from handlerspine.core.logging import LogContext, get_logger

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        async with LogContext(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, detail=detail, instance=instance)
    return JSONResponse(
        status_code=status,
        content=body.model_dump(),
        media_type="application/problem+json",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for handler exceptions; returns 500 with ProblemDetail."""
    logger.exception(
        "request_handler_failed",
        method=request.method,
        path=request.url.path,
        error=str(exc),
    )
    settings = getattr(request.app.state, "settings", None)
    debug = bool(settings and settings.debug)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if debug else "An unexpected error occurred.",
        instance=str(request.url),
    )
