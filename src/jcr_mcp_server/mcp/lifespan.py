"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config
from ..core.async_utils import init_semaphore, run_sync
from ..core.client import JcrClient
from ..core.repo import JcrRepository
from ..core.schema import SchemaCache
from ..sync import find_content_root

logger = logging.getLogger(__name__)

_CREDENTIALS_HINT = "Check JCR_HOSTS, JCR_USERNAME, JCR_PASSWORD (or JCR_ACCESS_TOKEN)."


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Look for a jcr_root directory under CWD when no content root is set
    - Create the client and validate the connection to every host
    - Fail fast if any host is unreachable

    Args:
        config_overrides: Optional dict with config values from CLI (hosts,
            username, password, insecure, debug, content_root)

    Yields:
        Dict with 'config', 'client', 'repository' and 'schema_cache' keys

    Raises:
        RuntimeError: If configuration is invalid or a host is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("JCR MCP Server starting...")

    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            config_path = config_files[0]
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = unified.fallbacks()
            sources.append(f"config file: {config_path}")

        overrides = config_overrides or {}
        config = load_config(
            hosts=overrides.get("hosts"),
            username=overrides.get("username"),
            password=overrides.get("password"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            content_root=overrides.get("content_root"),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Hosts: %s", ", ".join(config.hosts))
        _stderr_print(f"  Hosts: {', '.join(config.hosts)}")
        if not config.content_root:
            detected = find_content_root(Path.cwd())
            if detected is not None:
                config.content_root = str(detected)
                logger.info("Detected content root %s", detected)
        if config.content_root:
            _stderr_print(f"  Content root: {config.content_root}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(f"  {_CREDENTIALS_HINT}")
        raise RuntimeError(
            f"Configuration error: {e}. {_CREDENTIALS_HINT}"
        ) from e

    logger.info("Validating repository connection...")
    _stderr_print("  Validating repository connection...")
    client = JcrClient(config)
    for host in config.hosts:
        try:
            root_type = await run_sync(client.validate_connection, host)
        except Exception as e:
            logger.error("Failed to connect to %s: %s", host, e)
            _stderr_print(f"ERROR: Connection to {host} failed.")
            _stderr_print(f"  {e}")
            _stderr_print(f"  {_CREDENTIALS_HINT}")
            raise RuntimeError(
                f"Connection to {host} failed: {e}. {_CREDENTIALS_HINT}"
            ) from e
        logger.info("Connected to %s (root node type %s)", host, root_type)
        _stderr_print(f"  Connected to {host}")

    init_semaphore(config.max_parallel_requests)
    _stderr_print(f"  Parallel requests: {config.max_parallel_requests}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    repository = JcrRepository(client)
    yield {
        "config": config,
        "client": client,
        "repository": repository,
        "schema_cache": SchemaCache(repository),
    }

    logger.info("MCP server shutting down")
    _stderr_print("JCR MCP Server shutting down.")
