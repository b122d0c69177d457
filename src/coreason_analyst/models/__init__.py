# src/coreason_analyst/models/__init__.py

"""
Data models for the analysis pipeline.
"""

from .outcome import OutcomeStatus, PipelineOutcome
from .records import ExtractedRecord, ExtractionBatch, ExtractionTask, Labeled, NamedTableInfo, Scalar
from .results import ExecutionResult, GeneratedCode, ResultKind, decode_payload
from .sheets import RasterizedSheet, SheetImage, SheetInventory, SheetRasterizer, sanitize_table_name

__all__ = [
    "ExecutionResult",
    "ExtractedRecord",
    "ExtractionBatch",
    "ExtractionTask",
    "GeneratedCode",
    "Labeled",
    "NamedTableInfo",
    "OutcomeStatus",
    "PipelineOutcome",
    "RasterizedSheet",
    "ResultKind",
    "Scalar",
    "SheetImage",
    "SheetInventory",
    "SheetRasterizer",
    "decode_payload",
    "sanitize_table_name",
]
