# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from enum import StrEnum

from pydantic import BaseModel, Field

from coreason_analyst.models.records import ExtractionTask
from coreason_analyst.models.results import ExecutionResult


class OutcomeStatus(StrEnum):
    ANSWERED = "answered"
    CLARIFICATION = "clarification"
    NO_DATA = "no_data"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineOutcome(BaseModel):
    """The terminal, user-visible outcome of one pipeline run.

    Attributes:
        run_id: Identifier of the run, also stamped on channel events.
        status: How the run ended.
        message: Text shown to the user (clarification, error, or failure detail).
        result: The execution result, present only when the run reached the sandbox.
        error_type: Class name of the stage error for failed runs.
        tasks: The extraction tasks the planner produced, if any.
    """

    run_id: str
    status: OutcomeStatus
    message: str | None = None
    result: ExecutionResult | None = None
    error_type: str | None = None
    tasks: list[ExtractionTask] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.ANSWERED and self.result is not None and not self.result.is_failure
