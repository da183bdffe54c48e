"""MCP Server for JCR repositories using stdio transport.

This module implements the Model Context Protocol server that enables
AI agents to read and write repository content through standardized tools.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import ensure_config
from ..core.async_utils import gather_limited, run_sync
from ..logger import DEFAULT_LOG_FILE, setup_logging
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolContext,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("jcr-mcp-server")

# Initialized in main() from the lifespan context
_context: ToolContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(ctx: ToolContext, args: dict) -> types.CallToolResult:
    """Handle ping tool -- check that every configured host answers."""
    client = ctx.repository.client
    hosts = ctx.config.hosts

    async def check(host: str) -> tuple[str, str | None]:
        try:
            await run_sync(client.validate_connection, host)
            return host, None
        except Exception as e:
            return host, str(e)

    results = await gather_limited([check(host) for host in hosts])
    failed = [(host, error) for host, error in results if error]
    if failed:
        lines = [f"{host}: {error}" for host, error in failed]
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text="Repository connection failed:\n"
                    + "\n".join(lines)
                    + "\nCheck JCR_HOSTS, JCR_USERNAME, JCR_PASSWORD.",
                )
            ],
            isError=True,
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"JCR MCP server {__version__} connected to {', '.join(hosts)}",
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test connectivity to every configured repository host",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> ToolContext:
    """Get the global ToolContext.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _context is None:
        raise RuntimeError(
            "Tool context not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: ToolContext | None) -> None:
    global _context
    _context = context


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Return all registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    ctx = get_context()
    try:
        return await get_registry().call_tool(name, arguments, ctx)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Create the registry, filtered by *permissions_file* when given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), validates the
    repository connection via the lifespan manager, and serves JSON-RPC
    over stdio.

    Args:
        config_overrides: Optional dict with config values to override
            (hosts, username, password, insecure, debug, content_root,
            log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout during
    # protocol negotiation
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    set_registry(build_registry(overrides.get("permissions_file")))

    # The context is installed here rather than in the lifespan: under
    # `python -m jcr_mcp_server.mcp.server` this module is __main__ and a
    # relative import of it from lifespan.py would load a second copy.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_context(
            ToolContext(
                repository=ctx["repository"],
                schema_cache=ctx["schema_cache"],
            )
        )
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="jcr-mcp-server",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="JCR MCP Server - Model Context Protocol server for JCR/Sling repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (local author instance, admin/admin)
  jcr-mcp-server

  # Author and publish instances
  jcr-mcp-server --hosts http://localhost:4502,http://localhost:4503

  # Remote instance with credentials from the environment
  JCR_USERNAME=deployer JCR_PASSWORD=... jcr-mcp-server --hosts https://author.example.com

  # Enable jcr_push_file / jcr_export_content for a content package
  jcr-mcp-server --content-root ui.content/src/main/content/jcr_root

  # Read-only tools
  jcr-mcp-server --permissions-file /etc/jcr-mcp/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--hosts",
        help="Comma-separated repository hosts (takes precedence over JCR_HOSTS env var and config files)",
    )
    parser.add_argument(
        "--username",
        help="Override repository username (takes precedence over JCR_USERNAME env var and config files)",
    )
    parser.add_argument(
        "--password",
        help="Override repository password (takes precedence over JCR_PASSWORD env var and config files)"
        " (visible in process list -- prefer JCR_PASSWORD env var for security)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--content-root",
        help="Local jcr_root directory used by the content file tools",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (JCR_READ, JCR_WRITE, JCR_REPLICATE), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config file (unless one exists) and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"jcr-mcp-server version {__version__}",
    )

    args = parser.parse_args()

    if args.init_config:
        print(f"Config file: {ensure_config()}", file=sys.stderr)
        return

    config_overrides = {}
    if args.hosts:
        config_overrides["hosts"] = args.hosts
    if args.username:
        config_overrides["username"] = args.username
    if args.password:
        config_overrides["password"] = args.password
    if args.insecure:
        config_overrides["insecure"] = True
    if args.debug:
        config_overrides["debug"] = True
    if args.content_root:
        config_overrides["content_root"] = args.content_root
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    if config_overrides:
        override_keys = [k for k in config_overrides if k != "password"]
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
