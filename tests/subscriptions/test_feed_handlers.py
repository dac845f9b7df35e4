"""Tests for FeedHandler.from_module and the handler variants."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from handlerspine.context import HandlerContext
from handlerspine.core.errors import InvalidHandlerError
from handlerspine.feed import FeedFilter
from handlerspine.subscriptions.handlers import DirectHandler, FactoryHandler, FeedHandler
from tests._support.feeds import make_event


class TestFromModule:
    def test_direct_handler_with_dict_filter(self):
        module = SimpleNamespace(filter={"kinds": [1], "#t": ["order"]}, handler=lambda e, c: None)

        handler = FeedHandler.from_module("orders/created", module)

        assert isinstance(handler, DirectHandler)
        assert handler.handler_id == "orders/created"
        assert handler.filter == FeedFilter(kinds=[1], tags={"t": ["order"]})

    @pytest.mark.parametrize("attr", ["handler_factory", "get_handler"])
    def test_factory_variants(self, attr):
        module = SimpleNamespace(filter=FeedFilter(), **{attr: lambda: (lambda e, c: None)})
        assert isinstance(FeedHandler.from_module("h", module), FactoryHandler)

    @pytest.mark.parametrize("attr", ["handler_factory", "get_handler"])
    @pytest.mark.asyncio
    async def test_both_shapes_under_the_same_attribute(self, attr):
        seen = []

        def direct(event, ctx):
            seen.append(("direct", event.created_at))

        def factory():
            return lambda event, ctx: seen.append(("built", event.created_at))

        as_handler = FeedHandler.from_module("a", SimpleNamespace(filter={}, **{attr: direct}))
        as_factory = FeedHandler.from_module("b", SimpleNamespace(filter={}, **{attr: factory}))

        assert isinstance(as_handler, DirectHandler)
        assert isinstance(as_factory, FactoryHandler)

        await as_handler.invoke(make_event(1), HandlerContext())
        await as_factory.invoke(make_event(2), HandlerContext())
        assert seen == [("direct", 1), ("built", 2)]

    @pytest.mark.asyncio
    async def test_bound_method_handler_under_get_handler(self):
        class Audit:
            filter = FeedFilter()

            def __init__(self):
                self.seen = []

            def get_handler(self, event, ctx):
                self.seen.append(event.created_at)

        module = Audit()
        handler = FeedHandler.from_module("audit", module)

        await handler.invoke(make_event(7), HandlerContext())

        assert isinstance(handler, DirectHandler)
        assert module.seen == [7]

    def test_factory_wins_over_handler(self):
        module = SimpleNamespace(filter=FeedFilter(), handler=lambda e, c: None, handler_factory=lambda: print)
        assert isinstance(FeedHandler.from_module("h", module), FactoryHandler)

    @pytest.mark.parametrize(
        "module",
        [
            SimpleNamespace(handler=lambda e, c: None),
            SimpleNamespace(filter="kinds=1", handler=lambda e, c: None),
            SimpleNamespace(filter={"nope": 1}, handler=lambda e, c: None),
            SimpleNamespace(filter={}),
            SimpleNamespace(filter={}, handler="not callable"),
            SimpleNamespace(filter={}, handler_factory=42),
        ],
    )
    def test_invalid_shapes(self, module):
        with pytest.raises(InvalidHandlerError):
            FeedHandler.from_module("h", module)


class TestInvoke:
    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        seen = []

        def sync_handler(event, ctx):
            seen.append(("sync", event.created_at))

        async def async_handler(event, ctx):
            seen.append(("async", event.created_at))

        ctx = HandlerContext()
        await DirectHandler("a", FeedFilter(), sync_handler).invoke(make_event(1), ctx)
        await DirectHandler("b", FeedFilter(), async_handler).invoke(make_event(2), ctx)

        assert seen == [("sync", 1), ("async", 2)]

    @pytest.mark.asyncio
    async def test_context_is_passed(self):
        received = []
        ctx = HandlerContext(extras={"db": "conn"})

        await DirectHandler("a", FeedFilter(), lambda e, c: received.append(c)).invoke(make_event(1), ctx)

        assert received == [ctx]

    @pytest.mark.asyncio
    async def test_factory_called_once(self):
        factory = MagicMock(return_value=lambda e, c: None)
        handler = FactoryHandler("a", FeedFilter(), factory)

        await handler.invoke(make_event(1), HandlerContext())
        await handler.invoke(make_event(2), HandlerContext())

        factory.assert_called_once_with()

    def test_factory_must_return_callable(self):
        handler = FactoryHandler("a", FeedFilter(), lambda: None)
        with pytest.raises(InvalidHandlerError):
            handler.resolve()
