# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Error taxonomy for the analysis pipeline.

Every stage failure is an ``AnalystError``. A clarification from the planner is
not an error, and neither is a failure raised by generated code inside the
sandbox: that one travels back as data, tagged with ``ERROR_SENTINEL``.
"""

ERROR_SENTINEL = "__ERROR__:"


class AnalystError(Exception):
    """Base class for all pipeline errors surfaced to the user."""

    stage: str = "pipeline"

    @property
    def user_message(self) -> str:
        return f"Error: {self}"


class ConfigurationError(AnalystError):
    """Raised when the session is missing required configuration (e.g. the gateway credential)."""

    stage = "configuration"


class TransportError(AnalystError):
    """The Model Gateway was unreachable or answered with a non-success status."""

    stage = "transport"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PlanningError(AnalystError):
    """The planner reply was malformed or referenced sheets that do not exist."""

    stage = "planning"


class ExtractionError(AnalystError):
    """The extractor reply was malformed, empty, or violated the record contract."""

    stage = "extraction"


class CodeGenError(AnalystError):
    """The code generator reply lacked code or a valid result kind."""

    stage = "codegen"


class SandboxFault(AnalystError):
    """The sandbox engine channel itself failed (crash, init failure, protocol violation)."""

    stage = "sandbox"


class StageTimeoutError(AnalystError, TimeoutError):
    """A pipeline stage exceeded its configured time budget."""

    def __init__(self, stage: str, timeout: float):
        super().__init__(f"{stage} exceeded {timeout} seconds limit.")
        self.stage = stage
        self.timeout = timeout


class PipelineBusyError(AnalystError):
    """A run was requested while another run is still in flight."""

    stage = "orchestrator"
