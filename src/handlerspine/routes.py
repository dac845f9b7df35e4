"""
Route table builder: HTTP handlers from a handler tree.

``setup_routes()`` discovers HTTP handler files, rejects (path, verb)
collisions, and mounts one route per (path, verb) on a FastAPI
``APIRouter``. Every path known to the table answers all five verbs: verbs
without a handler file get a synthesized entry responding ``405 Method Not
Allowed`` with an ``Allow`` header and no body.

Ordering is deterministic: paths in discovery order, verbs within a path in
the fixed order GET, POST, PUT, PATCH, DELETE.

Handler file shape::

    # handlers/rest/orders/post.py
    async def handler(request):
        payload = await request.json()
        return {"accepted": payload["id"]}

Examples:
    >>> from fastapi import APIRouter
    >>> from handlerspine.discovery import StaticSource
    >>> table = setup_routes(APIRouter(), StaticSource({"a/get.py": lambda r: {}}))
    >>> [(e.path, e.verb, e.allowed) for e in table][:2]
    [('/a', 'GET', True), ('/a', 'POST', False)]

Tags:
    handler-spine, routes, http, fastapi, discovery

Doc-Types:
    api-reference
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import Response

from handlerspine.core.errors import DuplicateRouteError, EmptyHandlerSetError, InvalidHandlerError
from handlerspine.core.logging import get_logger
from handlerspine.discovery import HTTP_VERBS, HandlerFile, HandlerSource, discover, find_duplicates, route_key

logger = get_logger(__name__)

RequestHandler = Callable[[Request], Any]


@dataclass(frozen=True)
class RouteEntry:
    """One (path, verb) registration.

    Attributes:
        path: URL path, always starting with ``/``
        verb: Upper-case HTTP method
        handler: Callable receiving the request
        allowed: ``False`` for synthesized 405 entries
    """

    path: str
    verb: str
    handler: RequestHandler
    allowed: bool = True


def _method_not_allowed(allowed_verbs: list[str]) -> RequestHandler:
    allow = ", ".join(allowed_verbs)

    async def method_not_allowed(request: Request) -> Response:
        return Response(status_code=405, headers={"Allow": allow})

    return method_not_allowed


def _endpoint(handler: RequestHandler) -> Callable[[Request], Any]:
    async def endpoint(request: Request):
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    return endpoint


def resolve_request_handler(file: HandlerFile) -> RequestHandler:
    """Pick the callable out of a loaded HTTP handler file."""
    handler = getattr(file.module, "handler", None)
    if handler is None and callable(file.module):
        handler = file.module
    if not callable(handler):
        raise InvalidHandlerError(file.relative_path, "expected a callable 'handler'")
    return handler


class RouteTable:
    """Ordered (path, verb) entries for a handler tree."""

    def __init__(self, entries: list[RouteEntry]) -> None:
        self._entries = list(entries)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[RouteEntry]:
        return list(self._entries)

    @property
    def paths(self) -> list[str]:
        return list(dict.fromkeys(entry.path for entry in self._entries))

    def get(self, path: str, verb: str) -> RouteEntry | None:
        verb = verb.upper()
        for entry in self._entries:
            if entry.path == path and entry.verb == verb:
                return entry
        return None

    def describe(self) -> list[dict[str, Any]]:
        """Deterministic listing for diagnostics."""
        return [
            {
                "path": entry.path,
                "verb": entry.verb,
                "status": "handler" if entry.allowed else "405",
                "handler": getattr(entry.handler, "__qualname__", type(entry.handler).__name__),
            }
            for entry in self._entries
        ]

    def mount(self, router: APIRouter, *, prefix: str = "") -> APIRouter:
        """Register every entry on *router*."""
        for entry in self._entries:
            path = prefix + entry.path if entry.path != "/" else (prefix or "/")
            router.add_api_route(
                path,
                _endpoint(entry.handler) if entry.allowed else entry.handler,
                methods=[entry.verb],
                name=f"{entry.verb.lower()} {path}",
                response_model=None,
                include_in_schema=entry.allowed,
            )
            logger.debug("route_mounted", path=path, verb=entry.verb, allowed=entry.allowed)
        return router


def build_route_table(files: list[HandlerFile], *, root: str = "") -> RouteTable:
    """Turn discovered HTTP handler files into a :class:`RouteTable`.

    Raises:
        DuplicateRouteError: Two files resolve to the same (path, verb)
        EmptyHandlerSetError: No file maps to a verb
        InvalidHandlerError: A routable file has no callable handler
    """
    keyed: list[tuple[tuple[str, str], HandlerFile]] = []
    for file in files:
        key = route_key(file.relative_path)
        if key is None:
            logger.debug("route_file_ignored", root=root, path=file.relative_path)
            continue
        keyed.append((key, file))

    duplicates = find_duplicates(key for key, _ in keyed)
    if duplicates:
        path, verb = duplicates[0]
        raise DuplicateRouteError(path, verb).with_context(root=root)

    if not keyed:
        raise EmptyHandlerSetError(root, f"No routable handlers found under '{root}'")

    handlers = {key: resolve_request_handler(file) for key, file in keyed}
    paths = list(dict.fromkeys(path for path, _ in handlers))

    entries: list[RouteEntry] = []
    for path in paths:
        allowed_verbs = [verb for verb in HTTP_VERBS if (path, verb) in handlers]
        not_allowed = _method_not_allowed(allowed_verbs)
        for verb in HTTP_VERBS:
            handler = handlers.get((path, verb))
            if handler is None:
                entries.append(RouteEntry(path=path, verb=verb, handler=not_allowed, allowed=False))
            else:
                entries.append(RouteEntry(path=path, verb=verb, handler=handler))

    logger.info("route_table_built", root=root, paths=len(paths), entries=len(entries))
    return RouteTable(entries)


def setup_routes(router: APIRouter, source: HandlerSource, *, prefix: str = "") -> RouteTable:
    """Discover HTTP handlers from *source* and mount them on *router*.

    Nothing is mounted when discovery or duplicate detection fails.
    """
    files = discover(source)
    table = build_route_table(files, root=source.root)
    table.mount(router, prefix=prefix)
    return table


__all__ = [
    "RouteEntry",
    "RouteTable",
    "RequestHandler",
    "build_route_table",
    "resolve_request_handler",
    "setup_routes",
]
