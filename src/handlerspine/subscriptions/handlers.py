"""
Feed handler variants.

A feed handler file declares what it wants to see and how to process it,
in one of two shapes::

    # handlers/feed/orders/created.py  (direct)
    filter = {"kinds": [1], "#t": ["order"]}

    async def handler(event, ctx):
        ...

    # handlers/feed/orders/audit.py  (factory)
    filter = FeedFilter(kinds=[1])

    def handler_factory():
        client = AuditClient()
        return lambda event, ctx: client.record(event)

``FeedHandler.from_module()`` turns either shape into a ``DirectHandler``
or ``FactoryHandler``; the dispatcher only ever calls ``invoke()``.
``get_handler`` is accepted as an alias of ``handler_factory``. Either
attribute may also hold the event handler itself; a callable with required
parameters is taken to be the handler, one without is called as a factory.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from handlerspine.core.errors import InvalidHandlerError
from handlerspine.feed import FeedEvent, FeedFilter

if TYPE_CHECKING:
    from handlerspine.context import HandlerContext

EventHandlerFn = Callable[[FeedEvent, "HandlerContext"], Any]
HandlerFactory = Callable[[], EventHandlerFn]

_FACTORY_ATTRS = ("handler_factory", "get_handler")


def _takes_arguments(fn: Callable[..., Any]) -> bool:
    """True when *fn* has a required parameter, i.e. it is an event handler, not a factory."""
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return False
    return any(
        p.default is inspect.Parameter.empty
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        for p in parameters
    )


def _coerce_filter(handler_id: str, value: Any) -> FeedFilter:
    if isinstance(value, FeedFilter):
        return value
    if isinstance(value, Mapping):
        try:
            return FeedFilter.from_dict(value)
        except (TypeError, ValueError) as e:
            raise InvalidHandlerError(handler_id, f"invalid filter: {e}") from e
    raise InvalidHandlerError(handler_id, "missing 'filter'")


class FeedHandler(ABC):
    """A discovered feed handler: identifier, filter and an ``invoke`` capability."""

    def __init__(self, handler_id: str, filter: FeedFilter) -> None:
        self.handler_id = handler_id
        self.filter = filter

    @abstractmethod
    def resolve(self) -> EventHandlerFn:
        """Return the callable that processes events."""

    async def invoke(self, event: FeedEvent, context: HandlerContext) -> None:
        """Run the handler on *event*, awaiting it when asynchronous."""
        result = self.resolve()(event, context)
        if inspect.isawaitable(result):
            await result

    @classmethod
    def from_module(cls, handler_id: str, module: Any) -> FeedHandler:
        """Build the right variant for a loaded handler file.

        Raises:
            InvalidHandlerError: No filter, or neither a handler nor a factory
        """
        filter = _coerce_filter(handler_id, getattr(module, "filter", None))

        for attr in _FACTORY_ATTRS:
            factory = getattr(module, attr, None)
            if factory is not None:
                if not callable(factory):
                    raise InvalidHandlerError(handler_id, f"'{attr}' is not callable")
                if _takes_arguments(factory):
                    return DirectHandler(handler_id, filter, factory)
                return FactoryHandler(handler_id, filter, factory)

        handler = getattr(module, "handler", None)
        if callable(handler):
            return DirectHandler(handler_id, filter, handler)

        raise InvalidHandlerError(handler_id, "expected 'handler' or 'handler_factory'")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.handler_id!r})"


class DirectHandler(FeedHandler):
    """Handler callable exported directly by the file."""

    def __init__(self, handler_id: str, filter: FeedFilter, handler: EventHandlerFn) -> None:
        super().__init__(handler_id, filter)
        self._handler = handler

    def resolve(self) -> EventHandlerFn:
        return self._handler


class FactoryHandler(FeedHandler):
    """Handler built by a factory, called once on first resolution."""

    def __init__(self, handler_id: str, filter: FeedFilter, factory: HandlerFactory) -> None:
        super().__init__(handler_id, filter)
        self._factory = factory
        self._handler: EventHandlerFn | None = None

    def resolve(self) -> EventHandlerFn:
        if self._handler is None:
            handler = self._factory()
            if not callable(handler):
                raise InvalidHandlerError(self.handler_id, "handler factory did not return a callable")
            self._handler = handler
        return self._handler


__all__ = [
    "EventHandlerFn",
    "HandlerFactory",
    "FeedHandler",
    "DirectHandler",
    "FactoryHandler",
]
