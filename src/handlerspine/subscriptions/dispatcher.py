"""
Subscription dispatcher: resumable feed handlers.

``setup_subscriptions()`` is the whole feed-side wiring sequence:

1. Discover feed handler files (empty tree → ``EmptyHandlerSetError``).
2. Reject duplicate handler identifiers by returning ``None``.
3. Drain the module's own checkpoints (``CheckpointTracker``).
4. Open one subscription per handler with ``since = watermark + 1``.
5. After each handled event, publish a new checkpoint for that handler.

Handlers must tolerate seeing an event twice: a lost checkpoint write
means at most one event is reprocessed after a restart.

Tags:
    handler-spine, subscriptions, dispatcher, checkpoint, resume, feed
"""

from __future__ import annotations

from handlerspine.context import HandlerContext
from handlerspine.core.errors import EmptyHandlerSetError, InvalidHandlerError
from handlerspine.core.logging import LogContext, get_logger
from handlerspine.core.settings import ModuleSettings
from handlerspine.core.utils import now_in_seconds
from handlerspine.discovery import HandlerSource, discover, find_duplicates
from handlerspine.feed import EventCallback, Feed, FeedEvent, FeedFilter, FeedSubscription
from handlerspine.subscriptions.checkpoints import CheckpointTracker, Watermarks, build_checkpoint_event
from handlerspine.subscriptions.handlers import FeedHandler

logger = get_logger(__name__)


class SubscriptionManager:
    """Live subscriptions of one module, keyed by handler identifier."""

    def __init__(
        self,
        read_feed: Feed,
        subscriptions: dict[str, FeedSubscription],
        watermarks: Watermarks,
    ) -> None:
        self.feed = read_feed
        self.subscriptions = subscriptions
        self.watermarks = watermarks

    @property
    def handler_ids(self) -> list[str]:
        return list(self.subscriptions)

    async def close(self) -> None:
        for handler_id, subscription in self.subscriptions.items():
            await subscription.close()
            logger.debug("handler_unsubscribed", handler_id=handler_id)
        self.subscriptions = {}


class SubscriptionDispatcher:
    """Opens handler subscriptions and checkpoints after every handled event."""

    def __init__(
        self,
        read_feed: Feed,
        write_feed: Feed,
        context: HandlerContext,
        watermarks: Watermarks,
        settings: ModuleSettings,
    ) -> None:
        self._read_feed = read_feed
        self._write_feed = write_feed
        self._context = context
        self._watermarks = watermarks
        self._settings = settings

    def filter_for(self, handler: FeedHandler) -> FeedFilter:
        """Handler filter merged with its resume point."""
        since = self._watermarks.since_for(handler.handler_id)
        if since is None and not self._settings.replay_without_checkpoint:
            since = now_in_seconds()
        if since is not None and handler.filter.since is not None:
            since = max(since, handler.filter.since)
        return handler.filter.with_since(since)

    async def activate(self, handlers: list[FeedHandler]) -> SubscriptionManager:
        # Broken factories fail here, before anything is subscribed
        for handler in handlers:
            handler.resolve()

        manager = SubscriptionManager(self._read_feed, {}, self._watermarks)
        try:
            for handler in handlers:
                filter = self.filter_for(handler)
                manager.subscriptions[handler.handler_id] = await self._read_feed.subscribe(
                    filter,
                    self._deliver_to(handler),
                )
                logger.info(
                    "handler_subscribed",
                    handler_id=handler.handler_id,
                    since=filter.since,
                    filter=filter.to_dict(),
                )
        except BaseException:
            await manager.close()
            raise
        return manager

    def _deliver_to(self, handler: FeedHandler) -> EventCallback:
        async def on_event(event: FeedEvent) -> None:
            await self.dispatch(handler, event)

        return on_event

    async def dispatch(self, handler: FeedHandler, event: FeedEvent) -> None:
        """Invoke *handler* and checkpoint; handler errors propagate, no checkpoint."""
        async with LogContext(handler_id=handler.handler_id):
            await handler.invoke(event, self._context)
        await self.checkpoint(handler.handler_id, event.created_at)

    async def checkpoint(self, handler_id: str, watermark: int) -> None:
        self._watermarks.record(handler_id, watermark)
        event = build_checkpoint_event(
            self._write_feed.public_key,
            handler_id,
            watermark,
            kind=self._settings.checkpoint_kind,
            marker=self._settings.checkpoint_marker,
        )
        try:
            await self._write_feed.publish(event)
        except Exception as e:
            logger.warning(
                "checkpoint_publish_failed",
                handler_id=handler_id,
                watermark=watermark,
                error=str(e),
            )
            return
        logger.debug("checkpoint_published", handler_id=handler_id, watermark=watermark)


def load_feed_handlers(source: HandlerSource) -> list[FeedHandler] | None:
    """Discover feed handlers; ``None`` when two files share an identifier.

    Raises:
        EmptyHandlerSetError: Nothing discovered, or no file has a valid shape
    """
    files = discover(source)

    duplicates = find_duplicates(file.key for file in files)
    if duplicates:
        logger.error("duplicate_feed_handlers", root=source.root, handler_ids=duplicates)
        return None

    handlers: list[FeedHandler] = []
    for file in files:
        try:
            handlers.append(FeedHandler.from_module(file.key, file.module))
        except InvalidHandlerError as e:
            logger.warning("feed_handler_skipped", path=file.relative_path, reason=e.message)

    if not handlers:
        raise EmptyHandlerSetError(source.root, f"No valid feed handlers found under '{source.root}'")
    return handlers


async def setup_subscriptions(
    context: HandlerContext,
    read_feed: Feed,
    write_feed: Feed,
    source: HandlerSource,
    settings: ModuleSettings | None = None,
) -> SubscriptionManager | None:
    """Wire every feed handler under *source*.

    Returns:
        The manager owning the live subscriptions, or ``None`` when handler
        identifiers collide (nothing is subscribed in that case)
    """
    settings = settings or context.settings or ModuleSettings()

    handlers = load_feed_handlers(source)
    if handlers is None:
        return None

    tracker = CheckpointTracker(
        read_feed,
        write_feed.public_key,
        kind=settings.checkpoint_kind,
        marker=settings.checkpoint_marker,
    )
    watermarks = await tracker.drain()

    dispatcher = SubscriptionDispatcher(read_feed, write_feed, context, watermarks, settings)
    manager = await dispatcher.activate(handlers)
    logger.info("subscriptions_ready", root=source.root, handlers=len(manager.subscriptions))
    return manager


__all__ = [
    "SubscriptionManager",
    "SubscriptionDispatcher",
    "load_feed_handlers",
    "setup_subscriptions",
]
