# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from loguru import logger
from pydantic import ValidationError

from coreason_analyst.exceptions import ExtractionError
from coreason_analyst.gateway import image_part, text_part
from coreason_analyst.models import ExtractedRecord, ExtractionBatch, ExtractionTask, SheetImage, SheetInventory
from coreason_analyst.stages.base import GatewayStage
from coreason_analyst.stages.prompts import (
    EXTRACT_RECORDS,
    EXTRACTOR_FUNCTIONS,
    EXTRACTOR_SYSTEM_PROMPT,
    extractor_user_text,
)


class Extractor(GatewayStage):
    """Turns one extraction task plus its sheet image into a validated batch of records."""

    error_cls = ExtractionError
    stage_name = "extractor"

    async def extract(self, task: ExtractionTask, sheet: SheetImage) -> ExtractionBatch:
        """Extract records for a single task.

        Validation runs in order: structured payload, non-empty ``records``, ``date`` on
        every record, then label stability across the batch.

        Raises:
            ExtractionError: If any validation step fails.
            TransportError: If the gateway call itself fails.
        """
        messages = [
            {"role": "system", "content": EXTRACTOR_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    text_part(extractor_user_text(task.purpose, task.expected_schema)),
                    image_part(sheet.image),
                ],
            },
        ]
        logger.info(f"Extracting records from {task.file_id}/{task.sheet_id}")
        reply = await self.gateway.call(
            messages,
            EXTRACTOR_FUNCTIONS,
            max_tokens=self.config.extractor_max_tokens,
            function_call=EXTRACT_RECORDS,
        )
        _, payload = self._structured(reply)

        raw_records = payload.get("records")
        if not isinstance(raw_records, list):
            raise ExtractionError("Extractor response missing records array")
        if not raw_records:
            raise ExtractionError(f"No records were extracted from {task.file_id}/{task.sheet_id}")

        try:
            records = [ExtractedRecord.from_raw(raw) for raw in raw_records]
        except ValueError as e:
            raise ExtractionError(f"Malformed record from {task.file_id}/{task.sheet_id}: {e}") from e

        column_labels = payload.get("column_labels")
        if not isinstance(column_labels, dict):
            column_labels = {}

        try:
            batch = ExtractionBatch(
                task=task,
                records=records,
                column_labels={str(k): str(v) for k, v in column_labels.items()},
            )
        except ValidationError as e:
            raise ExtractionError(f"Inconsistent extraction from {task.file_id}/{task.sheet_id}: {e}") from e

        logger.info(f"Extracted {len(batch.records)} record(s) with columns {batch.column_keys}")
        return batch

    async def extract_all(self, tasks: list[ExtractionTask], inventory: SheetInventory) -> list[ExtractionBatch]:
        """Run every task sequentially; the first failure aborts the whole set."""
        batches: list[ExtractionBatch] = []
        for task in tasks:
            sheet = inventory.find(task.file_id, task.sheet_id)
            if sheet is None:
                raise ExtractionError(f"Sheet not found for task: {task.file_id}/{task.sheet_id}")
            batches.append(await self.extract(task, sheet))
        return batches
