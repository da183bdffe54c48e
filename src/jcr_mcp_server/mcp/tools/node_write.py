"""Write tool handlers for MCP server.

This module implements repository mutations: diff-based property saves,
node deletion, moves, and replication (publish/unpublish).
"""

import logging

import mcp.types as types

from ...core.client import get_host_from_url, make_url
from ...core.content_xml import parse_content_xml
from ...core.writer import SaveOptions
from ...validators import validate_property_name
from .errors import json_result, node_url, require_path
from .registry import JCR_REPLICATE, JCR_WRITE, ToolContext, ToolSpec

logger = logging.getLogger(__name__)

_HOST_PROPERTY = {
    "type": "string",
    "description": "Repository host (optional, defaults to the first configured host)",
}

# Tool definitions for list_tools()
NODE_WRITE_TOOLS = [
    types.Tool(
        name="jcr_save_properties",
        description="Bring a node and its descendants in line with a property tree, writing only what differs. Nested objects are child nodes; ':name' keys give type hints (e.g. {':count': 'Long'}). Pass either properties or content_xml.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
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
                "host": _HOST_PROPERTY,
                "properties": {
                    "type": "object",
                    "description": "Desired property tree",
                },
                "content_xml": {
                    "type": "string",
                    "description": "Desired tree as a .content.xml document (alternative to properties)",
                },
                "delete_props": {
                    "type": "boolean",
                    "description": "Delete properties missing from the tree, on nodes that declare jcr:primaryType (default: false)",
                    "default": False,
                },
                "delete_children": {
                    "type": "boolean",
                    "description": "Delete child nodes missing from the tree (default: false)",
                    "default": False,
                },
                "ignore_props": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Property names to leave untouched",
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="jcr_delete_node",
        description="Delete a node and its subtree.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Absolute node path (required)",
                },
                "host": _HOST_PROPERTY,
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="jcr_move_node",
        description="Move or rename a node within one repository.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Current absolute node path (required)",
                },
                "destination": {
                    "type": "string",
                    "description": "New absolute node path (required)",
                },
                "host": _HOST_PROPERTY,
            },
            "required": ["path", "destination"],
        },
    ),
    types.Tool(
        name="jcr_publish",
        description="Request replication of a node to the publish tier (activate) or its removal from it (deactivate).",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
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
                "host": _HOST_PROPERTY,
                "action": {
                    "type": "string",
                    "enum": ["activate", "deactivate"],
                    "default": "activate",
                    "description": "Replication command",
                },
            },
            "required": ["path"],
        },
    ),
]


def _desired_properties(args: dict) -> dict:
    properties = args.get("properties")
    content_xml = args.get("content_xml")
    if properties is not None and content_xml:
        raise ValueError("Pass either properties or content_xml, not both")
    if content_xml:
        return parse_content_xml(content_xml)
    if not isinstance(properties, dict):
        raise ValueError("properties (an object) or content_xml is required")
    for name in properties:
        if name.startswith(":"):
            continue
        is_valid, message = validate_property_name(name)
        if not is_valid:
            raise ValueError(message)
    return properties


async def _handle_save_properties(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    url = node_url(ctx, args)
    properties = _desired_properties(args)
    options = SaveOptions(
        ignore_props=tuple(args.get("ignore_props") or ()),
        delete_props=bool(args.get("delete_props", False)),
        delete_children=bool(args.get("delete_children", False)),
    )

    changes = await ctx.repository.save_properties(url, properties, options)

    if changes:
        text = f"Updated {url} ({len(changes)} changes):\n" + "\n".join(
            f"- {c}" for c in changes
        )
    else:
        text = f"{url} is already up to date"
    return json_result(text, {"url": url, "changes": changes})


async def _handle_delete_node(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    url = node_url(ctx, args)
    await ctx.repository.delete_node(url)
    return json_result(f"Deleted {url}", {"url": url, "deleted": True})


async def _handle_move_node(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    src_url = node_url(ctx, args)
    dst_url = make_url(get_host_from_url(src_url), require_path(args, "destination"))
    await ctx.repository.move_node(src_url, dst_url)
    return json_result(
        f"Moved {src_url} to {dst_url}", {"from": src_url, "to": dst_url}
    )


async def _handle_publish(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    url = node_url(ctx, args)
    action = args.get("action", "activate")
    match action:
        case "activate":
            await ctx.repository.publish_node(url)
        case "deactivate":
            await ctx.repository.unpublish_node(url)
        case _:
            raise ValueError(
                f"Invalid action '{action}'. Expected activate or deactivate."
            )
    logger.info("%s requested for %s", action, url)
    return json_result(
        f"Replication ({action}) requested for {url}",
        {"url": url, "action": action},
    )


# ToolSpec list for registry-based dispatch
NODE_WRITE_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=NODE_WRITE_TOOLS[0],
        permissions=frozenset({JCR_WRITE}),
        handler=_handle_save_properties,
    ),
    ToolSpec(
        tool=NODE_WRITE_TOOLS[1],
        permissions=frozenset({JCR_WRITE}),
        handler=_handle_delete_node,
    ),
    ToolSpec(
        tool=NODE_WRITE_TOOLS[2],
        permissions=frozenset({JCR_WRITE}),
        handler=_handle_move_node,
    ),
    ToolSpec(
        tool=NODE_WRITE_TOOLS[3],
        permissions=frozenset({JCR_REPLICATE}),
        handler=_handle_publish,
    ),
]
