"""MCP tool handlers for repository operations.

This package contains MCP tool implementations that wrap the repository
façade with async handlers and structured error responses.
"""

from .content_file import CONTENT_FILE_SPECS, CONTENT_FILE_TOOLS
from .errors import build_error_response
from .node_read import NODE_READ_SPECS, NODE_READ_TOOLS
from .node_write import NODE_WRITE_SPECS, NODE_WRITE_TOOLS
from .registry import (
    JCR_READ,
    JCR_REPLICATE,
    JCR_WRITE,
    ToolContext,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)

ALL_SPECS: list[ToolSpec] = (
    NODE_READ_SPECS + NODE_WRITE_SPECS + CONTENT_FILE_SPECS
)

__all__ = [
    "build_error_response",
    # Registry
    "ToolContext",
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "JCR_READ",
    "JCR_WRITE",
    "JCR_REPLICATE",
    # Spec lists
    "ALL_SPECS",
    "NODE_READ_SPECS",
    "NODE_WRITE_SPECS",
    "CONTENT_FILE_SPECS",
    # Tool lists
    "NODE_READ_TOOLS",
    "NODE_WRITE_TOOLS",
    "CONTENT_FILE_TOOLS",
]
