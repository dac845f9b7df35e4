"""Resumable feed handler subscriptions.

Modules
-------
handlers     FeedHandler variants (direct callable / factory)
checkpoints  Watermarks, CheckpointTracker, checkpoint event codec
dispatcher   SubscriptionDispatcher, SubscriptionManager, setup_subscriptions
"""

from handlerspine.subscriptions.checkpoints import (
    CheckpointTracker,
    Watermarks,
    build_checkpoint_event,
    parse_checkpoint,
)
from handlerspine.subscriptions.dispatcher import (
    SubscriptionDispatcher,
    SubscriptionManager,
    load_feed_handlers,
    setup_subscriptions,
)
from handlerspine.subscriptions.handlers import DirectHandler, FactoryHandler, FeedHandler

__all__ = [
    "CheckpointTracker",
    "Watermarks",
    "build_checkpoint_event",
    "parse_checkpoint",
    "SubscriptionDispatcher",
    "SubscriptionManager",
    "load_feed_handlers",
    "setup_subscriptions",
    "DirectHandler",
    "FactoryHandler",
    "FeedHandler",
]
