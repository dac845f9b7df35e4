"""Core primitives: errors, logging, settings and small helpers."""

from handlerspine.core.errors import (
    DiscoveryError,
    DuplicateRouteError,
    EmptyHandlerSetError,
    ErrorCategory,
    ErrorContext,
    FeedError,
    HandlerSpineError,
    InvalidHandlerError,
    SubscriptionSetupError,
)
from handlerspine.core.logging import LogContext, configure_logging, get_logger
from handlerspine.core.settings import CHECKPOINT_KIND, CHECKPOINT_MARKER, ModuleSettings
from handlerspine.core.utils import json_parse_or_null, json_stringify, now_in_seconds

__all__ = [
    "DiscoveryError",
    "DuplicateRouteError",
    "EmptyHandlerSetError",
    "ErrorCategory",
    "ErrorContext",
    "FeedError",
    "HandlerSpineError",
    "InvalidHandlerError",
    "SubscriptionSetupError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "CHECKPOINT_KIND",
    "CHECKPOINT_MARKER",
    "ModuleSettings",
    "json_parse_or_null",
    "json_stringify",
    "now_in_seconds",
]
