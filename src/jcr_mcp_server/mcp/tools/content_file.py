"""Content file tool handlers for MCP server.

This module bridges the local content package tree and the repository:
push a changed (or deleted) local file to every configured host, and
export a node tree as a ``.content.xml`` file.
"""

import logging
from pathlib import Path
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...core.content_xml import convert_to_content_xml, format_content_xml
from ...core.repo import FetchMode
from ...file_handler import validate_file_path, write_file_async
from ...sync import PathMapper, SyncEngine, format_sync_report, report_to_json
from .errors import json_result, node_url, require_path
from .registry import JCR_READ, JCR_WRITE, ToolContext, ToolSpec

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_DEPTH = 3

# Tool definitions for list_tools()
CONTENT_FILE_TOOLS = [
    types.Tool(
        name="jcr_push_file",
        description="Push a local file from the content package tree (jcr_root) to every configured host. A .content.xml updates the node's properties; other files are uploaded as nt:file nodes. Requires a configured content root.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "Absolute path of the local file under the content root",
                },
                "deleted": {
                    "type": "boolean",
                    "default": False,
                    "description": "The file was deleted locally; removes the remote file only when remote deletion is enabled",
                },
            },
            "required": ["file_path"],
        },
    ),
    types.Tool(
        name="jcr_export_content",
        description="Export a node tree as a .content.xml file. Without file_path, writes to the node's location under the configured content root.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Absolute node path (required)",
                },
                "host": {
                    "type": "string",
                    "description": "Repository host (optional, defaults to the first configured host)",
                },
                "file_path": {
                    "type": "string",
                    "description": "Absolute output path (optional)",
                },
                "depth": {
                    "type": "integer",
                    "default": DEFAULT_EXPORT_DEPTH,
                    "minimum": 0,
                    "maximum": 10,
                    "description": "Levels of descendants to include",
                },
            },
            "required": ["path"],
        },
    ),
]


def _content_root(ctx: ToolContext) -> Path:
    if not ctx.config.content_root:
        raise ValueError(
            "No content root configured. Set JCR_CONTENT_ROOT, "
            "--content-root, or sync.content_root in config.yml."
        )
    return Path(ctx.config.content_root)


async def _handle_push_file(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    file_path = args.get("file_path")
    if not file_path:
        raise ValueError("file_path is required")
    deleted = bool(args.get("deleted", False))
    if deleted:
        path = Path(file_path)
        if not path.is_absolute():
            raise ValueError(f"Path must be absolute: {file_path}")
    else:
        path = await run_sync(validate_file_path, file_path)

    engine = SyncEngine(
        repository=ctx.repository,
        hosts=ctx.config.hosts,
        mapper=PathMapper(_content_root(ctx)),
        delete_remote_files=ctx.config.delete_remote_files,
    )
    report = await engine.push(path, deleted=deleted)
    if report.remote_path is None:
        raise ValueError(
            f"{file_path} is outside the content root {ctx.config.content_root}"
        )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_report(report))],
        structuredContent=report_to_json(report),
        isError=not report.ok,
    )


async def _handle_export_content(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    url = node_url(ctx, args)
    depth = int(args.get("depth", DEFAULT_EXPORT_DEPTH))

    if args.get("file_path"):
        target, base_dir = args["file_path"], None
    else:
        root = _content_root(ctx)
        mapper = PathMapper(root)
        target = str(mapper.to_local_path(require_path(args), content_file=True))
        base_dir = str(mapper.jcr_root)

    node = await ctx.repository.fetch_node(url, FetchMode.RECURSIVE, depth)
    xml = format_content_xml(convert_to_content_xml(node))
    resolved, bytes_written = await write_file_async(
        target, xml, base_dir=base_dir
    )
    logger.info("Exported %s to %s", url, resolved)

    return json_result(
        f"Exported {url} to {resolved} ({bytes_written} bytes)",
        {
            "url": url,
            "file_path": str(resolved),
            "bytes_written": bytes_written,
            "depth": depth,
        },
    )


# ToolSpec list for registry-based dispatch
CONTENT_FILE_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=CONTENT_FILE_TOOLS[0],
        permissions=frozenset({JCR_WRITE}),
        handler=_handle_push_file,
    ),
    ToolSpec(
        tool=CONTENT_FILE_TOOLS[1],
        permissions=frozenset({JCR_READ}),
        handler=_handle_export_content,
    ),
]
