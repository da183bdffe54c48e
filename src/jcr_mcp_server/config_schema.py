"""Unified configuration schema for jcr_mcp_server.

Defines Pydantic models for the YAML config structure with dedicated
sections for repository connection, workspace sync and logging.

Usage:
    from jcr_mcp_server.config_schema import (
        UnifiedConfig, build_config,
    )

    raw = load_hierarchical_config()
    fallbacks = build_config(raw).fallbacks()
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class JcrConfig(BaseModel):
    """Repository connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    hosts: list[str] | None = Field(
        default=None, description="Repository base URLs"
    )
    username: str | None = Field(
        default=None, description="Repository username"
    )
    password: str | None = Field(
        default=None, description="Repository password"
    )
    access_token: str | None = Field(
        default=None, description="Bearer token (instead of basic auth)"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    verbose_logging: bool = Field(
        default=False,
        description="Log response bodies of failed requests",
    )
    max_parallel_requests: int = Field(
        default=4,
        ge=1,
        le=100,
        description="Maximum concurrent requests to the repository (1-100)",
    )
    proxies: dict[str, str] = Field(
        default_factory=dict,
        description="Host pattern (wildcards allowed) to proxy URL",
    )

    model_config = {"frozen": True}

    @field_validator("hosts", mode="before")
    @classmethod
    def _split_hosts(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [h.strip() for h in value.split(",") if h.strip()]
        return value


class SyncConfig(BaseModel):
    """Workspace sync settings.

    Attributes:
        content_root: Local ``jcr_root`` directory mirroring the repository.
        delete_remote_files: Delete remote ``nt:file`` nodes when the
            local file is deleted.
    """

    content_root: str | None = Field(
        default=None, description="Local jcr_root directory"
    )
    delete_remote_files: bool = Field(
        default=False,
        description="Propagate local file deletions to the repository",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    jcr: JcrConfig = Field(default_factory=JcrConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def fallbacks(self) -> dict[str, Any]:
        """Flatten the ``jcr`` and ``sync`` sections into the fallback
        dict accepted by ``load_config()``, dropping unset values."""
        merged = {**self.jcr.model_dump(), **self.sync.model_dump()}
        return {k: v for k, v in merged.items() if v is not None}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)

