"""
Structured error types for handler-spine.

Every failure the wiring engine can raise carries a category, a retry flag,
structured context and an optional chained cause, so the bootstrap layer
can decide whether to abort, skip or retry without string matching.

Manifesto:
    - **Typed Error Hierarchy:** Discovery and feed failures are distinct types
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry the root, path or handler id involved
    - **Error Chaining:** Original exceptions are preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                     HandlerSpineError                         │
        │  (category, retryable, context, cause)                        │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  DiscoveryError (CONFIG)        FeedError (FEED, retryable)   │
        │       │                                                       │
        │  EmptyHandlerSetError           SubscriptionSetupError        │
        │  DuplicateRouteError            (FEED)                        │
        │  InvalidHandlerError                                          │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = EmptyHandlerSetError("/srv/handlers/rest")
    >>> error.retryable
    False
    >>> error.context.root
    '/srv/handlers/rest'

    >>> error = DuplicateRouteError("/hello", "get")
    >>> error.to_dict()["context"]
    {'path': '/hello', 'verb': 'GET'}

Tags:
    error-handling, exception-hierarchy, discovery, feed, handler-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"             # Handler tree layout, settings
    FEED = "FEED"                 # Subscribe/publish against the event feed
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        root: Handler tree root being discovered
        path: Route path or handler file path
        verb: HTTP verb, upper-case
        handler_id: Feed handler identifier
        metadata: Additional key-value pairs
    """

    root: str | None = None
    path: str | None = None
    verb: str | None = None
    handler_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["root", "path", "verb", "handler_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class HandlerSpineError(Exception):
    """
    Base exception for all handler-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass what differs from the defaults.

    Examples:
        >>> error = HandlerSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>

        >>> error = HandlerSpineError("boom").with_context(handler_id="a/b")
        >>> error.context.handler_id
        'a/b'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> HandlerSpineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DISCOVERY ERRORS (Never Retryable)
# =============================================================================


class DiscoveryError(HandlerSpineError):
    """Handler tree cannot be turned into a consistent set of handlers."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class EmptyHandlerSetError(DiscoveryError):
    """No candidate handler files were found under a root."""

    def __init__(self, root: str, message: str | None = None):
        super().__init__(
            message or f"No handlers found under '{root}'",
            context=ErrorContext(root=root),
        )
        self.root = root


class DuplicateRouteError(DiscoveryError):
    """Two HTTP handler files resolve to the same (path, verb)."""

    def __init__(self, path: str, verb: str):
        verb = verb.upper()
        super().__init__(
            f"Duplicate route: {verb} {path}",
            context=ErrorContext(path=path, verb=verb),
        )
        self.path = path
        self.verb = verb


class InvalidHandlerError(DiscoveryError):
    """A handler file loaded but does not expose a usable handler."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Invalid handler '{path}': {reason}",
            context=ErrorContext(path=path),
        )
        self.path = path


# =============================================================================
# FEED ERRORS
# =============================================================================


class FeedError(HandlerSpineError):
    """Subscribe/publish failure against the event feed."""

    default_category = ErrorCategory.FEED
    default_retryable = True


class SubscriptionSetupError(HandlerSpineError):
    """Feed handlers could not be wired (duplicate identifiers)."""

    default_category = ErrorCategory.FEED
    default_retryable = True


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "HandlerSpineError",
    "DiscoveryError",
    "EmptyHandlerSetError",
    "DuplicateRouteError",
    "InvalidHandlerError",
    "FeedError",
    "SubscriptionSetupError",
]
