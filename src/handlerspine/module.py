"""
Module bootstrap: one process, two handler trees.

``Module.build()`` assembles settings, feeds, context and handler sources
once; ``start()`` wires the feed handlers first and then the HTTP routes:

- duplicate feed handler ids abort startup with ``SubscriptionSetupError``
- an HTTP tree with no routable handler means no port is ever bound and
  ``start()`` returns normally (the feed side keeps running)
- any other setup error propagates to the operator

``stop()`` is safe to call whether or not ``start()`` ran.

Example::

    module = Module.build(ModuleSettings(rest_path="handlers/rest", feed_path="handlers/feed"))
    await module.start()
    ...
    await module.stop()

Tags:
    handler-spine, bootstrap, lifecycle, uvicorn, module
"""

from __future__ import annotations

import asyncio

import uvicorn
from fastapi import APIRouter

from handlerspine.api.app import create_app
from handlerspine.context import HandlerContext
from handlerspine.core.errors import EmptyHandlerSetError, SubscriptionSetupError
from handlerspine.core.logging import get_logger
from handlerspine.core.settings import ModuleSettings
from handlerspine.discovery import DirectorySource, HandlerSource
from handlerspine.feed import Feed
from handlerspine.feed.memory import InMemoryFeed
from handlerspine.routes import RouteTable, setup_routes
from handlerspine.subscriptions.dispatcher import SubscriptionManager, setup_subscriptions

logger = get_logger(__name__)


class Module:
    """HTTP routes and feed subscriptions discovered from two handler trees."""

    def __init__(
        self,
        settings: ModuleSettings,
        context: HandlerContext,
        read_feed: Feed,
        write_feed: Feed,
        rest_source: HandlerSource,
        feed_source: HandlerSource,
    ) -> None:
        self.settings = settings
        self.context = context
        self.read_feed = read_feed
        self.write_feed = write_feed
        self.rest_source = rest_source
        self.feed_source = feed_source

        self.subscriptions: SubscriptionManager | None = None
        self.routes: RouteTable | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None

    @classmethod
    def build(
        cls,
        settings: ModuleSettings | None = None,
        *,
        context: HandlerContext | None = None,
        read_feed: Feed | None = None,
        write_feed: Feed | None = None,
        rest_source: HandlerSource | None = None,
        feed_source: HandlerSource | None = None,
    ) -> Module:
        """Fill in every collaborator not provided from *settings*.

        Without explicit feeds a single in-memory feed serves as both the
        read and the write connection.
        """
        settings = settings or ModuleSettings()
        write_feed = write_feed or InMemoryFeed(settings.public_key)
        read_feed = read_feed or write_feed

        context = context or HandlerContext()
        if context.outbox is None:
            context.outbox = write_feed
        if context.settings is None:
            context.settings = settings

        return cls(
            settings=settings,
            context=context,
            read_feed=read_feed,
            write_feed=write_feed,
            rest_source=rest_source or DirectorySource(settings.rest_path),
            feed_source=feed_source or DirectorySource(settings.feed_path),
        )

    @property
    def port(self) -> int:
        return self.settings.port

    @property
    def serving(self) -> bool:
        return self._server_task is not None

    async def start(self) -> None:
        manager = await setup_subscriptions(
            self.context,
            self.read_feed,
            self.write_feed,
            self.feed_source,
            self.settings,
        )
        if manager is None:
            raise SubscriptionSetupError("Error setting up subscriptions").with_context(
                root=self.feed_source.root
            )
        self.subscriptions = manager

        router = APIRouter()
        try:
            self.routes = setup_routes(router, self.rest_source, prefix=self.settings.api_prefix)
        except EmptyHandlerSetError as e:
            logger.warning("http_disabled", root=e.root, reason=e.message)
            return

        app = create_app(
            router,
            settings=self.settings,
            context=self.context,
            feed_handlers=manager.handler_ids,
        )
        config = uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower(),
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._server.serve(), name="handlerspine-http")
        logger.info(
            "module_started",
            host=self.settings.host,
            port=self.settings.port,
            routes=len(self.routes),
            feed_handlers=len(manager.subscriptions),
        )

    async def wait(self) -> None:
        """Block until the HTTP server exits (forever when HTTP is disabled)."""
        if self._server_task is not None:
            await self._server_task
        else:
            await asyncio.Event().wait()

    async def stop(self) -> None:
        server, task = self._server, self._server_task
        self._server = None
        self._server_task = None
        try:
            if server is not None and task is not None:
                server.should_exit = True
                await task
        finally:
            if self.subscriptions is not None:
                await self.subscriptions.close()
                self.subscriptions = None
            logger.info("module_stopped")


__all__ = ["Module"]
