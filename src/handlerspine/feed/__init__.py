"""Event feed model and protocol.

Why This Package Exists
-----------------------
Feed handlers consume events from a publish/subscribe feed and the engine
checkpoints their progress back into the same feed. The engine only needs
four capabilities from a feed: an identity (``public_key``), a filtered
subscription that announces the end of stored events, a publish call, and
``close()``. The ``Feed`` protocol captures exactly that, so the wiring
logic never depends on a particular transport.

Usage::

    from handlerspine.feed import FeedEvent, FeedFilter
    from handlerspine.feed.memory import InMemoryFeed

    feed = InMemoryFeed()

    async def on_event(event: FeedEvent) -> None:
        print(event.content)

    sub = await feed.subscribe(FeedFilter(kinds=[1]), on_event, on_eose=lambda: print("live"))
    await feed.publish(FeedEvent.create(feed.public_key, kind=1, content="hello"))

Modules
-------
memory      InMemoryFeed -- stored-event replay + live fan-out, single process
"""

from __future__ import annotations

import hashlib
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, runtime_checkable

from handlerspine.core.utils import json_stringify, now_in_seconds

__all__ = [
    "FeedEvent",
    "FeedFilter",
    "Feed",
    "FeedSubscription",
    "EventCallback",
    "EoseCallback",
    "is_parameterized_replaceable",
]


def is_parameterized_replaceable(kind: int) -> bool:
    """Kinds 30000-39999: only the newest event per (author, kind, ``d`` tag) counts."""
    return 30000 <= kind < 40000


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class FeedEvent:
    """A single feed record.

    Attributes:
        pubkey: Author identity
        created_at: UNIX timestamp in seconds
        kind: Integer event kind
        tags: List of tag arrays, e.g. ``[["d", "lastHandled:orders"]]``
        content: Free-form string payload
        id: SHA-256 over the canonical serialization (computed when empty)
    """

    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]] = field(default_factory=list)
    content: str = ""
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            self.id = self.compute_id()

    @classmethod
    def create(
        cls,
        pubkey: str,
        *,
        kind: int,
        content: str = "",
        tags: Iterable[Iterable[str]] = (),
        created_at: int | None = None,
    ) -> FeedEvent:
        """Build an event stamped with the current time."""
        return cls(
            pubkey=pubkey,
            created_at=now_in_seconds() if created_at is None else created_at,
            kind=kind,
            tags=[list(tag) for tag in tags],
            content=content,
        )

    def compute_id(self) -> str:
        serialized = json_stringify([0, self.pubkey, self.created_at, self.kind, self.tags, self.content])
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    def tag_values(self, name: str) -> list[str]:
        """Values of every tag named *name* (first element after the name)."""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]

    def first_tag(self, name: str) -> str | None:
        values = self.tag_values(name)
        return values[0] if values else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": self.tags,
            "content": self.content,
        }


# ── Filter ───────────────────────────────────────────────────────────────


@dataclass
class FeedFilter:
    """Subscription query. Unset criteria match everything.

    Tag criteria are keyed by tag name without the ``#`` prefix; an event
    matches when any of its tags with that name carries one of the values.
    """

    ids: list[str] | None = None
    authors: list[str] | None = None
    kinds: list[int] | None = None
    tags: dict[str, list[str]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FeedFilter:
        """Accept the wire form (``{"kinds": [1], "#d": ["x"]}``)."""
        tags: dict[str, list[str]] = {
            name: list(values) for name, values in dict(data.get("tags") or {}).items()
        }
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key.startswith("#") and len(key) > 1:
                tags[key[1:]] = list(value)
            elif key in ("ids", "authors", "kinds"):
                kwargs[key] = list(value)
            elif key in ("since", "until", "limit"):
                kwargs[key] = None if value is None else int(value)
            elif key != "tags":
                raise ValueError(f"Unknown filter field: {key!r}")
        return cls(tags=tags, **kwargs)

    def with_since(self, since: int | None) -> FeedFilter:
        """Copy of this filter with a lower time bound (``None`` keeps the existing one)."""
        if since is None:
            return replace(self, tags=dict(self.tags))
        return replace(self, tags=dict(self.tags), since=since)

    def matches(self, event: FeedEvent) -> bool:
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not any(value in values for value in event.tag_values(name)):
                return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Wire form, omitting unset criteria."""
        result: dict[str, Any] = {}
        for key in ("ids", "authors", "kinds"):
            value = getattr(self, key)
            if value is not None:
                result[key] = list(value)
        for name, values in self.tags.items():
            result[f"#{name}"] = list(values)
        for key in ("since", "until", "limit"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


# ── Type Aliases ─────────────────────────────────────────────────────────

EventCallback = Callable[[FeedEvent], Awaitable[None] | None]
EoseCallback = Callable[[], Awaitable[None] | None]


# ── Feed Protocol ────────────────────────────────────────────────────────


@runtime_checkable
class FeedSubscription(Protocol):
    """Handle for one open subscription."""

    id: str
    filter: FeedFilter

    async def close(self) -> None:
        """Stop further deliveries. An in-flight callback is not interrupted."""
        ...


@runtime_checkable
class Feed(Protocol):
    """Protocol for feed connections.

    Stored events matching a subscription are delivered first, in
    chronological order, followed by a single end-of-stored-events
    callback, followed by live events as they are published.
    """

    public_key: str

    async def subscribe(
        self,
        filter: FeedFilter,
        on_event: EventCallback,
        *,
        on_eose: EoseCallback | None = None,
    ) -> FeedSubscription:
        """Open a subscription.

        Args:
            filter: Query the events must match
            on_event: Called once per delivered event, awaited before the next
            on_eose: Called once when stored events have all been delivered

        Returns:
            Subscription handle
        """
        ...

    async def publish(self, event: FeedEvent) -> None:
        """Write an event to the feed."""
        ...

    async def close(self) -> None:
        """Close every subscription and release resources."""
        ...
