# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

import asyncio
from typing import Any

import anyio
from loguru import logger

from coreason_analyst.config import AnalystConfig
from coreason_analyst.models import PipelineOutcome, SheetImage, SheetInventory
from coreason_analyst.session import AnalystSessionAsync


class AnalystMCP:
    """
    MCP-compliant server logic wrapper for Coreason Analyst.
    Holds the loaded sheets and one lazily-opened analyst session.
    """

    def __init__(self, config: AnalystConfig | None = None):
        self.config = config or AnalystConfig()
        self.sheets: dict[tuple[str, str], SheetImage] = {}
        self.session: AnalystSessionAsync | None = None
        self._creation_lock = asyncio.Lock()

    @property
    def inventory(self) -> SheetInventory:
        return SheetInventory(self.sheets.values())

    async def _get_or_create_session(self) -> AnalystSessionAsync:
        if self.session is not None:
            return self.session

        async with self._creation_lock:
            if self.session is None:
                logger.info("Opening analyst session")
                session = AnalystSessionAsync(self.config)
                await session.__aenter__()
                self.session = session
            return self.session

    async def load_sheet(self, file_id: str, sheet_id: str, image_path: str, width: int, height: int) -> SheetImage:
        """
        Load a rasterized sheet (PNG) into the inventory, replacing any sheet with the same ids.
        """
        data = await anyio.Path(image_path).read_bytes()
        sheet = SheetImage.from_png_bytes(file_id, sheet_id, data, width, height)
        self.sheets[sheet.key] = sheet
        logger.info(f"Loaded sheet {file_id}/{sheet_id} ({width}x{height}) as {sheet.table_name}")
        return sheet

    def list_sheets(self) -> list[dict[str, Any]]:
        return [
            {
                "file_id": sheet.file_id,
                "sheet_id": sheet.sheet_id,
                "table_name": sheet.table_name,
                "width": sheet.width,
                "height": sheet.height,
            }
            for sheet in self.sheets.values()
        ]

    def clear_sheets(self) -> int:
        count = len(self.sheets)
        self.sheets.clear()
        logger.info(f"Cleared {count} sheet(s)")
        return count

    async def ask(self, query: str) -> PipelineOutcome:
        """
        Run the analysis pipeline over the loaded sheets.
        """
        session = await self._get_or_create_session()
        return await session.ask(query, self.inventory)

    async def shutdown(self) -> None:
        """
        Close the analyst session and its sandbox engine.
        """
        async with self._creation_lock:
            session, self.session = self.session, None
        if session is not None:
            logger.info("Shutting down analyst session")
            await session.__aexit__(None, None, None)
