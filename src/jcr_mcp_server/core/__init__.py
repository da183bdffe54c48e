"""Core repository access shared by the MCP server and the workspace sync."""

from .async_utils import run_sync, run_sync_limited
from .client import JcrClient
from .content_xml import convert_to_content_xml, parse_content_xml
from .errors import FetchError, JcrError, OperationError
from .repo import FetchMode, JcrRepository
from .writer import PropertyWriter, SaveOptions

__all__ = [
    "FetchError",
    "FetchMode",
    "JcrClient",
    "JcrError",
    "JcrRepository",
    "OperationError",
    "PropertyWriter",
    "SaveOptions",
    "convert_to_content_xml",
    "parse_content_xml",
    "run_sync",
    "run_sync_limited",
]
