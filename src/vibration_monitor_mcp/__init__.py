"""Vibration Monitor MCP Server - Per-axis vibration statistics and severity."""

from .server import mcp


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


__all__ = ["main", "mcp"]
