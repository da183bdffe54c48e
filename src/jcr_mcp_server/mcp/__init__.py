"""MCP stdio server exposing repository tools."""
