"""
handler-spine: HTTP routes and resumable feed handlers from a directory tree.

One file, one handler: files under the HTTP tree become routes named after
their path (``orders/post.py`` → ``POST /orders``); files under the feed
tree become subscriptions that checkpoint their progress into the feed and
resume after a restart.
"""

from handlerspine.context import HandlerContext
from handlerspine.core.errors import (
    DuplicateRouteError,
    EmptyHandlerSetError,
    HandlerSpineError,
    InvalidHandlerError,
    SubscriptionSetupError,
)
from handlerspine.core.settings import ModuleSettings
from handlerspine.discovery import DirectorySource, StaticSource
from handlerspine.feed import FeedEvent, FeedFilter
from handlerspine.module import Module
from handlerspine.routes import setup_routes
from handlerspine.subscriptions import setup_subscriptions

__version__ = "0.1.0"

__all__ = [
    "HandlerContext",
    "DuplicateRouteError",
    "EmptyHandlerSetError",
    "HandlerSpineError",
    "InvalidHandlerError",
    "SubscriptionSetupError",
    "ModuleSettings",
    "DirectorySource",
    "StaticSource",
    "FeedEvent",
    "FeedFilter",
    "Module",
    "setup_routes",
    "setup_subscriptions",
]
