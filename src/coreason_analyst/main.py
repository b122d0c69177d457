# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

import json
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent

from coreason_analyst.mcp import AnalystMCP
from coreason_analyst.models import OutcomeStatus
from coreason_analyst.utils.logger import logger

# Initialize Analyst Logic
analyst = AnalystMCP()

# Initialize MCP Server
mcp = FastMCP("coreason-analyst")


@mcp.tool()  # type: ignore[misc]
async def load_sheet(file_id: str, sheet_id: str, image_path: str, width: int, height: int) -> str:
    """
    Load a rasterized spreadsheet sheet (PNG produced by the rasterizer) for analysis.
    """
    try:
        sheet = await analyst.load_sheet(file_id, sheet_id, image_path, width, height)
    except Exception as e:
        return f"Error loading sheet: {e!s}"
    return f"Loaded {sheet.file_id}/{sheet.sheet_id} as table {sheet.table_name}"


@mcp.tool()  # type: ignore[misc]
async def list_sheets() -> list[dict[str, Any]]:
    """
    List the sheets currently loaded.
    """
    return analyst.list_sheets()


@mcp.tool()  # type: ignore[misc]
async def clear_sheets() -> str:
    """
    Remove every loaded sheet.
    """
    count = analyst.clear_sheets()
    return f"Cleared {count} sheet(s)"


@mcp.tool()  # type: ignore[misc]
async def ask(query: str) -> list[TextContent]:
    """
    Ask a natural-language question about the loaded sheets.
    Returns a message and, when the analysis succeeds, the result as JSON.
    """
    try:
        outcome = await analyst.ask(query)
    except Exception as e:
        return [TextContent(type="text", text=f"Error: {e!s}")]

    output: list[TextContent] = []
    if outcome.message:
        output.append(TextContent(type="text", text=outcome.message))

    if outcome.status is OutcomeStatus.ANSWERED and outcome.result is not None and not outcome.result.is_failure:
        output.append(TextContent(type="text", text=f"Result Kind: {outcome.result.kind}"))
        output.append(TextContent(type="text", text=json.dumps(outcome.result.decoded(), default=str)))

    if not output:
        output.append(TextContent(type="text", text=f"Status: {outcome.status}"))
    return output


def main() -> None:
    """Entry point for the MCP server."""
    logger.info("Starting coreason-analyst MCP server")
    mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
