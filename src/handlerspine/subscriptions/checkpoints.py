"""
Checkpoints: per-handler watermarks persisted in the feed itself.

Manifesto:
    A restarted module must resume every feed handler after the last event
    it finished, without a separate database. Each time a handler completes
    an event, the module publishes a parameterized replaceable checkpoint
    event addressed by the handler identifier; on startup it reads its own
    checkpoints back before any handler sees live traffic.

Architecture:
    ::

        kind 31111, author = own public key
        tags    [["d", "lastHandled:orders/created"]]
        content "1700000000"
              │
              ▼  CheckpointTracker.drain()  (until end-of-stored-events)
        ┌──────────────────────────────────────────┐
        │ Watermarks                                │
        │ orders/created → 1700000000               │
        └──────────────────────────────────────────┘
              │
              ▼  SubscriptionDispatcher: since = watermark + 1

Guardrails:
    ❌ DON'T: Open handler subscriptions before ``drain()`` returns
    ✅ DO: Await the tracker, then activate the dispatcher

    ❌ DON'T: Abort on a corrupt checkpoint
    ✅ DO: Skip it; one bad record must not block every handler

Tags:
    checkpoint, watermark, resume, feed, replay, handler-spine
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

from handlerspine.core.logging import get_logger
from handlerspine.core.settings import CHECKPOINT_KIND, CHECKPOINT_MARKER
from handlerspine.feed import Feed, FeedEvent, FeedFilter

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Checkpoint event codec
# ---------------------------------------------------------------------------


def checkpoint_tag(handler_id: str, marker: str = CHECKPOINT_MARKER) -> list[str]:
    return ["d", f"{marker}:{handler_id}"]


def build_checkpoint_event(
    pubkey: str,
    handler_id: str,
    watermark: int,
    *,
    kind: int = CHECKPOINT_KIND,
    marker: str = CHECKPOINT_MARKER,
) -> FeedEvent:
    """Checkpoint record for *handler_id* at *watermark* seconds."""
    return FeedEvent.create(
        pubkey,
        kind=kind,
        content=str(watermark),
        tags=[checkpoint_tag(handler_id, marker)],
    )


def parse_checkpoint(event: FeedEvent, marker: str = CHECKPOINT_MARKER) -> tuple[str, int] | None:
    """Return ``(handler_id, watermark)``, or ``None`` for foreign/malformed events.

    >>> ev = FeedEvent(pubkey="p", created_at=1, kind=31111,
    ...                tags=[["d", "lastHandled:handler1"]], content="160")
    >>> parse_checkpoint(ev)
    ('handler1', 160)
    """
    prefix = f"{marker}:"
    d_tag = event.first_tag("d")
    if d_tag is None or not d_tag.startswith(prefix):
        return None
    handler_id = d_tag[len(prefix):]
    if not handler_id:
        return None
    try:
        watermark = int(event.content.strip())
    except ValueError:
        return None
    if watermark < 0:
        return None
    return handler_id, watermark


# ---------------------------------------------------------------------------
# Watermarks
# ---------------------------------------------------------------------------


class Watermarks:
    """handler identifier → timestamp of the last processed event.

    Entries are only ever written by the tracker (while draining) and by the
    owning handler's own dispatch path afterwards; they are never removed.

    >>> marks = Watermarks()
    >>> marks.record("handler1", 160)
    >>> marks.since_for("handler1"), marks.since_for("other")
    (161, None)
    """

    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self._marks: dict[str, int] = dict(initial or {})

    def record(self, handler_id: str, timestamp: int) -> None:
        self._marks[handler_id] = timestamp

    def get(self, handler_id: str) -> int | None:
        return self._marks.get(handler_id)

    def since_for(self, handler_id: str) -> int | None:
        """Lower time bound for resuming *handler_id* (exclusive of its watermark)."""
        watermark = self._marks.get(handler_id)
        return None if watermark is None else watermark + 1

    def as_dict(self) -> dict[str, int]:
        return dict(self._marks)

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._marks

    def __len__(self) -> int:
        return len(self._marks)

    def __iter__(self) -> Iterator[str]:
        return iter(self._marks)

    def __repr__(self) -> str:
        return f"Watermarks({self._marks!r})"


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class CheckpointTracker:
    """Reads the module's own checkpoints until the feed reports end of stored events.

    Args:
        feed: Read connection
        author: Public key the checkpoints were written with
        kind: Checkpoint event kind
        marker: Prefix of the ``d`` tag value
    """

    def __init__(
        self,
        feed: Feed,
        author: str,
        *,
        kind: int = CHECKPOINT_KIND,
        marker: str = CHECKPOINT_MARKER,
        watermarks: Watermarks | None = None,
    ) -> None:
        self._feed = feed
        self._author = author
        self._kind = kind
        self._marker = marker
        self.watermarks = watermarks if watermarks is not None else Watermarks()
        self.ready = False

    @property
    def filter(self) -> FeedFilter:
        return FeedFilter(kinds=[self._kind], authors=[self._author])

    def observe(self, event: FeedEvent) -> None:
        """Record one stored checkpoint; later events for a handler overwrite earlier ones."""
        if self.ready:
            return

        d_tag = event.first_tag("d")
        if d_tag is None or not d_tag.startswith(f"{self._marker}:"):
            # Same kind and author, written by something else
            logger.debug("checkpoint_foreign_event", event_id=event.id, d_tag=d_tag)
            return

        parsed = parse_checkpoint(event, self._marker)
        if parsed is None:
            logger.warning(
                "checkpoint_ignored",
                event_id=event.id,
                d_tag=event.first_tag("d"),
                content=event.content[:64],
            )
            return

        handler_id, watermark = parsed
        self.watermarks.record(handler_id, watermark)
        logger.debug("checkpoint_recorded", handler_id=handler_id, watermark=watermark)

    async def drain(self) -> Watermarks:
        """Subscribe, collect checkpoints, return once stored events are exhausted."""
        end_of_stored = asyncio.Event()
        subscription = await self._feed.subscribe(
            self.filter,
            self.observe,
            on_eose=end_of_stored.set,
        )
        await end_of_stored.wait()
        self.ready = True
        await subscription.close()

        logger.info("checkpoints_loaded", author=self._author, handlers=len(self.watermarks))
        return self.watermarks


__all__ = [
    "Watermarks",
    "CheckpointTracker",
    "checkpoint_tag",
    "build_checkpoint_event",
    "parse_checkpoint",
]
