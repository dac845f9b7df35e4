"""handler-spine command-line interface."""

from handlerspine.cli.app import app

__all__ = ["app"]
