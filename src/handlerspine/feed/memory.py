"""
In-memory feed implementation.

Manifesto:
    Single-process deployments and test suites need a feed that behaves
    like a relay (stored events, end-of-stored-events, live fan-out,
    replaceable records) without external infrastructure.

Each subscription owns an asyncio queue drained by its own task, so a slow
callback stalls only that subscription. Stored events are kept in
chronological order; for parameterized replaceable kinds only the newest
event per (author, kind, ``d`` tag) is retained.

Tags:
    handler-spine, feed, in-memory, asyncio, testing, single-node

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import bisect
import contextlib
import inspect
import secrets
import uuid
from collections.abc import Iterable
from typing import Any

from handlerspine.core.errors import FeedError
from handlerspine.core.logging import get_logger
from handlerspine.feed import (
    EoseCallback,
    EventCallback,
    FeedEvent,
    FeedFilter,
    is_parameterized_replaceable,
)

__all__ = ["InMemoryFeed", "MemorySubscription"]

logger = get_logger(__name__)

_EOSE = object()


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class MemorySubscription:
    """Subscription record with its own delivery queue."""

    def __init__(
        self,
        feed: InMemoryFeed,
        filter: FeedFilter,
        on_event: EventCallback,
        on_eose: EoseCallback | None,
    ) -> None:
        self.id = f"sub_{uuid.uuid4().hex[:12]}"
        self.filter = filter
        self._feed = feed
        self._on_event = on_event
        self._on_eose = on_eose
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._outstanding = 0
        self._task: asyncio.Task | None = None
        self.closed = False

    @property
    def idle(self) -> bool:
        return self._outstanding == 0

    def _enqueue(self, item: Any) -> None:
        self._outstanding += 1
        self._queue.put_nowait(item)

    def _start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"feed-{self.id}")

    async def _run(self) -> None:
        while not self.closed:
            item = await self._queue.get()
            try:
                if item is _EOSE:
                    if self._on_eose is not None:
                        await _maybe_await(self._on_eose())
                else:
                    await _maybe_await(self._on_event(item))
            except Exception:
                logger.exception(
                    "feed_delivery_failed",
                    subscription_id=self.id,
                    event_id=None if item is _EOSE else item.id,
                )
            finally:
                self._outstanding -= 1
                self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._subscriptions.pop(self.id, None)
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        # Undelivered items will never run
        self._outstanding = 0


class InMemoryFeed:
    """In-process feed for single-node deployments and tests.

    Example::

        feed = InMemoryFeed()

        async def log_event(event: FeedEvent):
            print(event.kind, event.content)

        await feed.subscribe(FeedFilter(kinds=[1]), log_event)
        await feed.publish(FeedEvent.create(feed.public_key, kind=1, content="hi"))
        await feed.flush()
    """

    def __init__(
        self,
        public_key: str | None = None,
        *,
        events: Iterable[FeedEvent] = (),
    ) -> None:
        self.public_key = public_key or secrets.token_hex(32)
        self._stored: list[FeedEvent] = []
        self._ids: set[str] = set()
        self._addresses: dict[tuple[str, int, str], FeedEvent] = {}
        self._subscriptions: dict[str, MemorySubscription] = {}
        self._closed = False
        for event in events:
            self._store(event)

    # -- storage -------------------------------------------------------------

    def _store(self, event: FeedEvent) -> bool:
        """Store *event*; ``False`` when it is a duplicate or superseded."""
        if event.id in self._ids:
            return False

        if is_parameterized_replaceable(event.kind):
            address = (event.pubkey, event.kind, event.first_tag("d") or "")
            current = self._addresses.get(address)
            if current is not None:
                if current.created_at > event.created_at:
                    return False
                self._stored.remove(current)
                self._ids.discard(current.id)
            self._addresses[address] = event

        # Ties keep publish order
        bisect.insort_right(self._stored, event, key=lambda e: e.created_at)
        self._ids.add(event.id)
        return True

    @property
    def stored_events(self) -> list[FeedEvent]:
        return list(self._stored)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # -- Feed protocol -------------------------------------------------------

    async def subscribe(
        self,
        filter: FeedFilter,
        on_event: EventCallback,
        *,
        on_eose: EoseCallback | None = None,
    ) -> MemorySubscription:
        if self._closed:
            raise FeedError("Feed is closed")

        sub = MemorySubscription(self, filter, on_event, on_eose)
        backlog = [event for event in self._stored if filter.matches(event)]
        if filter.limit is not None:
            backlog = backlog[-filter.limit:] if filter.limit > 0 else []

        # Backlog, EOSE and registration happen without yielding so no live
        # event can be queued ahead of the backlog.
        for event in backlog:
            sub._enqueue(event)
        sub._enqueue(_EOSE)
        self._subscriptions[sub.id] = sub
        sub._start()

        logger.debug(
            "feed_subscribed",
            subscription_id=sub.id,
            filter=filter.to_dict(),
            backlog=len(backlog),
        )
        return sub

    async def publish(self, event: FeedEvent) -> None:
        if self._closed:
            raise FeedError("Feed is closed")

        if not self._store(event):
            logger.debug("feed_event_dropped", event_id=event.id, kind=event.kind)
            return

        for sub in list(self._subscriptions.values()):
            if sub.filter.matches(event):
                sub._enqueue(event)

    async def flush(self) -> None:
        """Wait until every queued delivery (including cascades) has run."""
        while True:
            busy = [sub for sub in self._subscriptions.values() if not sub.idle]
            if not busy:
                return
            await asyncio.gather(*(sub.join() for sub in busy))

    async def close(self) -> None:
        self._closed = True
        for sub in list(self._subscriptions.values()):
            await sub.close()
