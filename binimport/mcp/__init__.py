"""
MCP server for binimport.

Exposes program loading and project queries to LLMs via the Model Context Protocol.

Tools:
    - binimport_load: Load a binary file into the project
    - binimport_programs: List saved programs
    - binimport_info: Show one saved program in detail
    - binimport_stats: Get project statistics

Usage:
    Install: pip install binimport
    Run: binimport-mcp
"""

import asyncio

from binimport.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
