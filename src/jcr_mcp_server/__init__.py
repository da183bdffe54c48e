"""MCP server and sync tooling for JCR content repositories."""

__version__ = "0.1.0"
