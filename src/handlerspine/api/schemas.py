"""
API schemas: RFC 7807 errors and the health payload.

Discovered handlers return whatever they like; these models only cover the
responses the module itself produces.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Example:
        {
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": "http://localhost:3000/orders"
        }
    """

    type: str = Field(default="about:blank", description="Error type URI (usually 'about:blank')")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")


class HealthResponse(BaseModel):
    """Liveness payload with a summary of what the module wired."""

    status: Literal["healthy"] = "healthy"
    service: str
    routes: int = Field(default=0, description="Mounted (path, verb) entries, 405s included")
    feed_handlers: list[str] = Field(default_factory=list, description="Subscribed handler ids")
