"""Shared processing context handed to every handler invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from handlerspine.core.settings import ModuleSettings
from handlerspine.feed import Feed, FeedEvent


@dataclass
class HandlerContext:
    """What a handler may use besides the event or request itself.

    Attributes:
        outbox: Write connection for application-level output
        settings: The module's settings
        extras: Application-provided collaborators (clients, caches, ...)
    """

    outbox: Feed | None = None
    settings: ModuleSettings | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    async def publish(self, event: FeedEvent) -> None:
        """Publish through the outbox."""
        if self.outbox is None:
            raise RuntimeError("HandlerContext has no outbox configured")
        await self.outbox.publish(event)


__all__ = ["HandlerContext"]
