"""Error response builders and shared utilities for MCP tool handlers.

Structured error responses carry a corrective action so that AI agents can
recover from errors without human intervention. The shared helpers resolve
tool arguments into node URLs and build results.
"""

import json
from typing import Any

import mcp.types as types

from ...core.client import make_url
from ...core.errors import FetchError
from ...validators import validate_host_url, validate_jcr_path
from .registry import ToolContext


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            validation_error, operation_failed, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "/content/x not found", "Use jcr_query to find nodes.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_fetch_error(
    error: FetchError, path: str | None = None
) -> types.CallToolResult:
    """Translate a transport error into a structured error response."""
    match error.status_code:
        case 404:
            target = f"'{path}'" if path else error.url
            return build_error_response(
                "not_found",
                f"Node {target} does not exist",
                "Use jcr_query or jcr_get_node on the parent to find existing nodes.",
            )
        case 401 | 403:
            return build_error_response(
                "permission_denied",
                str(error),
                "Check JCR_USERNAME/JCR_PASSWORD or JCR_ACCESS_TOKEN and the user's ACLs.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Check the repository error log or retry later.",
            )


# ---------------------------------------------------------------------------
# Shared argument helpers
# ---------------------------------------------------------------------------


def resolve_host(ctx: ToolContext, args: dict) -> str:
    """Host named in *args*, or the first configured host.

    Raises:
        ValueError: If the host is malformed or not configured.
    """
    host = args.get("host")
    if not host:
        return ctx.config.hosts[0]
    is_valid, message = validate_host_url(host)
    if not is_valid:
        raise ValueError(message)
    host = host.rstrip("/")
    if host not in ctx.config.hosts:
        raise ValueError(
            f"Host {host} is not configured. Known hosts: {', '.join(ctx.config.hosts)}"
        )
    return host


def require_path(args: dict, key: str = "path") -> str:
    path = args.get(key)
    if not path:
        raise ValueError(f"{key} is required")
    is_valid, message = validate_jcr_path(path)
    if not is_valid:
        raise ValueError(message)
    return path


def node_url(ctx: ToolContext, args: dict, key: str = "path") -> str:
    """Resolve ``host`` and *key* arguments into a node URL."""
    return make_url(resolve_host(ctx, args), require_path(args, key))


def json_result(text: str, structured: dict[str, Any]) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)
