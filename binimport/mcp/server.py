"""MCP server implementation for binimport."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from binimport.core.storage import ProjectRepository, get_default_db_path
from binimport.importer import (
    DEFAULT_LANGUAGE,
    Importer,
    program_to_dict,
    project_file_to_dict,
)

logger = logging.getLogger(__name__)

server = Server("binimport")


def _get_repo(must_exist: bool = True) -> ProjectRepository:
    """Get the project repository for the current directory."""
    db_path = get_default_db_path(Path.cwd())
    if must_exist and not db_path.exists():
        raise FileNotFoundError(
            f"No binimport project found. Load a file first.\nExpected: {db_path}"
        )
    return ProjectRepository(db_path)


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="binimport_load",
            description=(
                "Load a binary file into the project as a program. "
                "Returns the saved programs and any loader messages."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "file": {
                        "type": "string",
                        "description": "Path of the file to load",
                    },
                    "language": {
                        "type": "string",
                        "description": f"Processor language ID (default: {DEFAULT_LANGUAGE})",
                    },
                    "compiler": {
                        "type": "string",
                        "description": "Compiler spec ID (default: the language's first)",
                    },
                    "name": {
                        "type": "string",
                        "description": "Program name (default: the file name)",
                    },
                    "folder": {
                        "type": "string",
                        "description": "Project folder to save into (default: /)",
                    },
                    "options": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Load options as KEY=VALUE strings",
                    },
                },
                "required": ["file"],
            },
        ),
        Tool(
            name="binimport_programs",
            description="List the programs saved in the project.",
            inputSchema={
                "type": "object",
                "properties": {
                    "folder": {
                        "type": "string",
                        "description": "Only list programs in this folder (optional)",
                    },
                },
            },
        ),
        Tool(
            name="binimport_info",
            description=(
                "Show a saved program: provenance properties, memory blocks, "
                "symbols and functions."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Project path of the program, e.g. /firmware.bin",
                    },
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="binimport_stats",
            description="Get statistics about the project.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "binimport_load":
            result = _handle_load(
                arguments["file"],
                arguments.get("language", DEFAULT_LANGUAGE),
                arguments.get("compiler"),
                arguments.get("name"),
                arguments.get("folder", "/"),
                arguments.get("options", []),
            )
        elif name == "binimport_programs":
            result = _handle_programs(arguments.get("folder"))
        elif name == "binimport_info":
            result = _handle_info(arguments["path"])
        elif name == "binimport_stats":
            result = _handle_stats()
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except Exception as e:
        logger.debug("Tool %s failed", name, exc_info=True)
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


def _handle_load(
    file: str,
    language: str,
    compiler: str | None,
    name: str | None,
    folder: str,
    options: list[str],
) -> dict[str, Any]:
    """Handle binimport_load tool."""
    path = Path(file).resolve()
    if not path.is_file():
        return {"error": f"No such file: {file}"}

    with _get_repo(must_exist=False) as repo:
        result = Importer(repo).import_file(
            path,
            language_id=language,
            compiler_spec_id=compiler,
            name=name,
            folder=folder,
            option_args=options,
        )
        try:
            if result.error is not None:
                return {"error": result.error}
            return {
                "programs": [program_to_dict(p) for p in result.programs],
                "messages": result.log.messages,
            }
        finally:
            result.release()


def _handle_programs(folder: str | None) -> dict[str, Any]:
    """Handle binimport_programs tool."""
    with _get_repo() as repo:
        return {"results": [project_file_to_dict(f) for f in repo.list_files(folder)]}


def _handle_info(path: str) -> dict[str, Any]:
    """Handle binimport_info tool."""
    with _get_repo() as repo:
        return project_file_to_dict(repo.open_file(path), details=True)


def _handle_stats() -> dict[str, Any]:
    """Handle binimport_stats tool."""
    with _get_repo() as repo:
        stats = repo.get_stats()
        return {
            "folders": stats["folders"],
            "programs": stats["programs"],
            "blocks": stats["blocks"],
            "symbols": stats["symbols"],
            "last_imported": str(stats["last_imported"]) if stats["last_imported"] else None,
        }


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
