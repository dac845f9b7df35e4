"""
Structured logging for handler-spine.

Discovery, checkpoint replay and handler dispatch run at startup or inside
feed delivery tasks, so every log line is a structlog event with key/value
fields. ``LogContext`` scopes the identifiers that tie lines together:
``request_id`` for HTTP handlers, ``handler_id`` for feed handlers.

JSON output uses ECS field names; the correlation fields are renamed too:

    ==============  ====================
    bound key       JSON field
    ==============  ====================
    timestamp       ``@timestamp``
    level           ``log.level``
    request_id      ``http.request.id``
    handler_id      ``handler.id``
    ==============  ====================

Example::

    configure_logging(level="INFO", json_format=True)
    with LogContext(handler_id="orders/created"):
        get_logger(__name__).info("handler_invoked")

Tags:
    logging, structlog, ecs, handler-spine
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_ECS_FIELDS = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "request_id": "http.request.id",
    "handler_id": "handler.id",
}


def _service_name(service: str) -> Processor:
    def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return add_service


def _rename_ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, ecs_key in _ECS_FIELDS.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "handler-spine",
) -> None:
    """Configure structlog once at process start.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: ``None`` picks JSON unless stdout is a terminal
        service: Value of ``service.name`` on every line
    """
    if json_format is None:
        json_format = not sys.stdout.isatty()
    numeric_level = getattr(logging, level.upper())

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.dev.set_exc_info,
        _service_name(service),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            _rename_ecs_fields,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # uvicorn logs through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


class LogContext:
    """Bind fields to every log line emitted inside the block (sync or async).

    Example:
        async with LogContext(handler_id="orders/created"):
            await handler.invoke(event, ctx)
    """

    def __init__(self, **fields: Any):
        self._fields = fields

    def __enter__(self) -> LogContext:
        structlog.contextvars.bind_contextvars(**self._fields)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self._fields)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = ["configure_logging", "get_logger", "LogContext"]
