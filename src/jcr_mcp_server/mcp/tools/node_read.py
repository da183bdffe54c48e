"""Read-only node tool handlers for MCP server.

This module implements repository read operations: get a node, run a
QueryBuilder query, and inspect node type definitions.
"""

import logging
from dataclasses import asdict

import mcp.types as types

from ...core.content_xml import convert_to_content_xml, format_content_xml
from ...core.repo import FetchMode
from .errors import dump_json, json_result, node_url, require_path, resolve_host
from .registry import JCR_READ, ToolContext, ToolSpec

logger = logging.getLogger(__name__)

_MODES = {
    "normal": FetchMode.NORMAL,
    "properties": FetchMode.PROPERTY,
    "children": FetchMode.CHILDREN,
    "recursive": FetchMode.RECURSIVE,
    "tree": FetchMode.RECURSIVE_CHILDREN,
}

_HOST_PROPERTY = {
    "type": "string",
    "description": "Repository host, e.g. http://localhost:4502 (optional, defaults to the first configured host)",
}

# Tool definitions for list_tools()
NODE_READ_TOOLS = [
    types.Tool(
        name="jcr_get_node",
        description="Get a repository node as JSON (or as .content.xml). Child nodes at the depth limit appear as empty objects; ':name' keys carry property type hints.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Absolute node path, e.g. /content/site/en (required)",
                },
                "host": _HOST_PROPERTY,
                "mode": {
                    "type": "string",
                    "enum": list(_MODES),
                    "default": "normal",
                    "description": "normal: node with immediate children as {}; properties: properties only; children: child nodes only; recursive: full tree to depth; tree: child node tree without properties",
                },
                "depth": {
                    "type": "integer",
                    "description": "Levels to fetch for recursive and tree modes (default: 1)",
                    "default": 1,
                    "minimum": 0,
                    "maximum": 10,
                },
                "format": {
                    "type": "string",
                    "enum": ["json", "xml"],
                    "default": "json",
                    "description": "Output format",
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="jcr_query",
        description="Find nodes with a QueryBuilder query. Returns the matching paths.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Search below this path (required)",
                },
                "host": _HOST_PROPERTY,
                "type": {
                    "type": "string",
                    "description": "Node type filter, e.g. cq:Page (optional)",
                },
                "fulltext": {
                    "type": "string",
                    "description": "Full-text search term (optional)",
                },
                "property": {
                    "type": "string",
                    "description": "Property name to match, e.g. jcr:content/sling:resourceType (optional)",
                },
                "value": {
                    "type": "string",
                    "description": "Value the property must have (used with property)",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum results (default: 20, max: 100)",
                    "default": 20,
                    "minimum": 1,
                    "maximum": 100,
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="jcr_node_type",
        description="Inspect node type definitions. Without a name, lists the registered node types; with a name, returns its supertypes and property definitions.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Node type name, e.g. cq:PageContent (optional)",
                },
                "host": _HOST_PROPERTY,
                "inherited": {
                    "type": "boolean",
                    "description": "Include property definitions inherited from supertypes (default: false)",
                    "default": False,
                },
                "include_mixins": {
                    "type": "boolean",
                    "description": "Include mixin types when listing (default: true)",
                    "default": True,
                },
                "refresh": {
                    "type": "boolean",
                    "description": "Reload definitions from the repository (default: false)",
                    "default": False,
                },
            },
            "required": [],
        },
    ),
]


async def _handle_get_node(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    url = node_url(ctx, args)
    mode_name = args.get("mode", "normal")
    if mode_name not in _MODES:
        raise ValueError(
            f"Invalid mode '{mode_name}'. Expected one of: {', '.join(_MODES)}"
        )
    depth = int(args.get("depth", 1))
    fmt = args.get("format", "json")

    node = await ctx.repository.fetch_node(url, _MODES[mode_name], depth)

    if fmt == "xml":
        text = format_content_xml(convert_to_content_xml(node))
    else:
        text = dump_json(node)

    return json_result(
        text,
        {"url": url, "mode": mode_name, "node": node},
    )


async def _handle_query(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    host = resolve_host(ctx, args)
    path = require_path(args)
    limit = int(args.get("limit", 20))
    if not 1 <= limit <= 100:
        raise ValueError("limit must be between 1 and 100")

    predicates: dict = {"path": path, "p.limit": limit}
    if args.get("type"):
        predicates["type"] = args["type"]
    if args.get("fulltext"):
        predicates["fulltext"] = args["fulltext"]
    if args.get("property"):
        predicates["property"] = args["property"]
        if args.get("value") is not None:
            predicates["property.value"] = args["value"]

    logger.debug("Query on %s: %s", host, predicates)
    hits = await ctx.repository.execute_query(host, predicates)
    paths = [hit.get("path") for hit in hits if isinstance(hit, dict)]

    if paths:
        text = f"Found {len(paths)} nodes:\n" + "\n".join(
            f"- {p}" for p in paths
        )
    else:
        text = f"No nodes found below {path}"

    return json_result(
        text,
        {"host": host, "predicates": predicates, "hits": hits},
    )


async def _handle_node_type(
    ctx: ToolContext, args: dict
) -> types.CallToolResult:
    host = resolve_host(ctx, args)
    if args.get("refresh"):
        ctx.schema_cache.invalidate(host)
    registry = await ctx.schema_cache.get(host)

    name = args.get("name")
    if not name:
        include_mixins = args.get("include_mixins", True)
        names = sorted(
            registry.node_type_names(
                None if include_mixins else (lambda t: not t.is_mixin)
            )
        )
        return json_result(
            f"{len(names)} node types:\n" + "\n".join(names),
            {"host": host, "node_types": names},
        )

    node_type = registry.get_node_type(name)
    if node_type is None:
        raise ValueError(
            f"Unknown node type '{name}'. Call jcr_node_type without a name to list types."
        )
    if args.get("inherited"):
        properties = registry.get_effective_properties(name)
    else:
        properties = dict(registry.get_node_properties(name))

    lines = [f"{node_type.name}"]
    if node_type.supertypes:
        lines.append(f"Supertypes: {', '.join(node_type.supertypes)}")
    flags = [
        label
        for label, enabled in (
            ("abstract", node_type.is_abstract),
            ("mixin", node_type.is_mixin),
            ("orderable", node_type.has_orderable_child_nodes),
        )
        if enabled
    ]
    if flags:
        lines.append(f"Flags: {', '.join(flags)}")
    lines.append("Properties:")
    for definition in properties.values():
        suffix = "[]" if definition.multiple else ""
        markers = " (mandatory)" if definition.mandatory else ""
        lines.append(
            f"- {definition.name}: {definition.required_type}{suffix}{markers}"
        )

    return json_result(
        "\n".join(lines),
        {
            "host": host,
            "name": node_type.name,
            "supertypes": list(node_type.supertypes),
            "is_abstract": node_type.is_abstract,
            "is_mixin": node_type.is_mixin,
            "properties": {k: asdict(v) for k, v in properties.items()},
        },
    )


# ToolSpec list for registry-based dispatch
NODE_READ_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=NODE_READ_TOOLS[0],
        permissions=frozenset({JCR_READ}),
        handler=_handle_get_node,
    ),
    ToolSpec(
        tool=NODE_READ_TOOLS[1],
        permissions=frozenset({JCR_READ}),
        handler=_handle_query,
    ),
    ToolSpec(
        tool=NODE_READ_TOOLS[2],
        permissions=frozenset({JCR_READ}),
        handler=_handle_node_type,
    ),
]
