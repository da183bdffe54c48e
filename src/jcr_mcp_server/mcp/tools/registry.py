"""ToolSpec and ToolRegistry for permission-based tool filtering.

This module provides a centralized registry for MCP tools that supports
filtering based on coarse repository permissions, enabling operators to
restrict which tools are exposed to AI agents.

Key concepts:
- ToolContext: The objects a handler works with (repository, schema cache).
- ToolSpec: Immutable dataclass linking a Tool definition, required permissions,
  and an async handler with standardized signature (ctx, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed permissions at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.
- load_permissions_file: Reads a simple text file of permission names.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types
import requests

from ...config import Config
from ...core.errors import FetchError, OperationError
from ...core.repo import JcrRepository
from ...core.schema import SchemaCache

logger = logging.getLogger(__name__)

# Permission names understood by the permissions file
JCR_READ = "JCR_READ"
JCR_WRITE = "JCR_WRITE"
JCR_REPLICATE = "JCR_REPLICATE"
KNOWN_PERMISSIONS = frozenset({JCR_READ, JCR_WRITE, JCR_REPLICATE})


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Shared objects handed to every tool handler."""

    repository: JcrRepository
    schema_cache: SchemaCache

    @property
    def config(self) -> Config:
        return self.repository.client.config


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Permissions required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (ctx, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[[ToolContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional permission-based filtering.

    If allowed_permissions is None, all specs are included.
    Otherwise, a spec is included only if:
    - its permissions set is empty (always available), or
    - its permissions are a subset of allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered (permitted) specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        ctx: ToolContext,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Repository, transport and validation errors are translated into
        structured CallToolResult responses with corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_fetch_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(ctx, args)
        except FetchError as e:
            logger.warning("Request failed in %s: %s %s", name, e.status_code, e)
            return translate_fetch_error(e, args.get("path"))
        except OperationError as e:
            return build_error_response(
                "operation_failed",
                str(e),
                "Check the node with jcr_get_node, then retry.",
            )
        except requests.RequestException as e:
            logger.warning("Connection error in %s: %s", name, e)
            return build_error_response(
                "connection_error",
                str(e),
                "Check that the repository host is reachable, or run ping.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log or retry later.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load permissions from a text file.

    Format: one permission per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Read-only access
        JCR_READ

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file names an unknown permission or is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Invalid permission '{stripped}' at line {line_num} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(permissions)
