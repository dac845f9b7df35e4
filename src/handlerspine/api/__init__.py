"""HTTP surface: app factory, middleware and schemas."""

from handlerspine.api.app import HEALTH_PATH, create_app

__all__ = ["HEALTH_PATH", "create_app"]
