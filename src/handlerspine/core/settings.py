"""Module settings.

``ModuleSettings`` is assembled once at process start and passed explicitly
into the setup calls; nothing below the bootstrap layer reads the
environment.

Order of precedence (highest → lowest):
    1. Keyword arguments / ``ModuleSettings(...)`` overrides
    2. Environment variables (``HANDLERSPINE_PORT``, ...)
    3. ``.env`` file
    4. Defaults below

Examples:
    >>> settings = ModuleSettings(rest_path="handlers/rest", port=8080)
    >>> settings.checkpoint_kind
    31111

Tags:
    settings, configuration, pydantic, environment, handler-spine
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CHECKPOINT_KIND = 31111
CHECKPOINT_MARKER = "lastHandled"


def normalize_prefix(value: str) -> str:
    """URL prefix with a leading and no trailing slash; empty stays empty.

    >>> normalize_prefix("api/")
    '/api'
    """
    value = value.strip().rstrip("/")
    if value and not value.startswith("/"):
        value = "/" + value
    return value


class ModuleSettings(BaseSettings):
    """Settings for one handler-spine module (HTTP + feed handlers)."""

    model_config = SettingsConfigDict(
        env_prefix="HANDLERSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Network ──────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")

    # ── Observability ────────────────────────────────────────────
    debug: bool = Field(default=False, description="Expose error details in responses")
    log_level: str = Field(default="INFO", description="Structlog log level")
    json_logs: bool | None = Field(default=None, description="None = JSON unless tty")

    # ── Handler trees ────────────────────────────────────────────
    rest_path: str = Field(default="handlers/rest", description="Root of HTTP handler files")
    feed_path: str = Field(default="handlers/feed", description="Root of feed handler files")
    api_prefix: str = Field(default="", description="URL prefix for discovered routes")

    # ── Checkpointing ────────────────────────────────────────────
    public_key: str | None = Field(
        default=None,
        description="Write identity; defaults to the write feed's own key",
    )
    checkpoint_kind: int = Field(default=CHECKPOINT_KIND)
    checkpoint_marker: str = Field(default=CHECKPOINT_MARKER)
    replay_without_checkpoint: bool = Field(
        default=True,
        description="Handlers with no checkpoint get no lower time bound",
    )

    @field_validator("checkpoint_kind")
    @classmethod
    def _parameterized_replaceable(cls, value: int) -> int:
        if not 30000 <= value < 40000:
            raise ValueError("checkpoint_kind must be in the parameterized replaceable range 30000-39999")
        return value

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        return normalize_prefix(value)


__all__ = ["ModuleSettings", "CHECKPOINT_KIND", "CHECKPOINT_MARKER", "normalize_prefix"]
