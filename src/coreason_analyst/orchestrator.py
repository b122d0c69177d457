# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from enum import StrEnum
from uuid import uuid4

import anyio
from loguru import logger

from coreason_analyst.channel import ResultChannel
from coreason_analyst.config import AnalystConfig
from coreason_analyst.engine import SandboxEngine
from coreason_analyst.exceptions import AnalystError, PipelineBusyError, StageTimeoutError
from coreason_analyst.models import (
    ExtractionBatch,
    ExtractionTask,
    NamedTableInfo,
    OutcomeStatus,
    PipelineOutcome,
    SheetImage,
    SheetInventory,
    sanitize_table_name,
)
from coreason_analyst.stages import Clarification, CodeGenerator, Extractor, TaskPlanner

NO_DATA_MESSAGE = "Please drop an Excel file first"
EMPTY_QUERY_MESSAGE = "Error: Please enter a question about your data."
CANCELLED_MESSAGE = "Analysis cancelled."


class PipelineState(StrEnum):
    IDLE = "idle"
    PLANNING = "planning"
    CLARIFYING = "clarifying"
    EXTRACTING = "extracting"
    REGISTERING = "registering"
    CODE_GENERATING = "code_generating"
    EXECUTING = "executing"
    FAILED = "failed"


StateListener = Callable[[PipelineState], None]


@contextmanager
def _stage_deadline(stage: str, seconds: float) -> Iterator[None]:
    try:
        with anyio.fail_after(seconds):
            yield
    except StageTimeoutError:
        raise
    except TimeoutError as e:
        raise StageTimeoutError(stage, seconds) from e


class Orchestrator:
    """Sequences plan -> extract -> register -> generate -> execute for one query at a time.

    A second ``run`` while one is in flight is rejected with ``PipelineBusyError``;
    nothing is queued. Every run ends in a ``PipelineOutcome`` and leaves the
    orchestrator ``IDLE``.
    """

    def __init__(
        self,
        planner: TaskPlanner,
        extractor: Extractor,
        codegen: CodeGenerator,
        engine: SandboxEngine,
        channel: ResultChannel,
        config: AnalystConfig | None = None,
        on_state_change: StateListener | None = None,
    ):
        self.planner = planner
        self.extractor = extractor
        self.codegen = codegen
        self.engine = engine
        self.channel = channel
        self.config = config or engine.config
        self.on_state_change = on_state_change
        self._state = PipelineState.IDLE
        self._lock = anyio.Lock()
        self._scope: anyio.CancelScope | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def cancel(self) -> bool:
        """Cancel the in-flight run, if any. Returns whether a run was cancelled."""
        if self._scope is None:
            return False
        logger.info("Cancelling in-flight analysis")
        self._scope.cancel()
        return True

    async def run(self, query: str, sheets: SheetInventory | Iterable[SheetImage]) -> PipelineOutcome:
        """Answer ``query`` against the given sheets.

        Raises:
            PipelineBusyError: If another run is in flight.
        """
        try:
            self._lock.acquire_nowait()
        except anyio.WouldBlock:
            raise PipelineBusyError("Another analysis is still running. Please wait for it to finish.") from None

        run_id = uuid4().hex
        outcome: PipelineOutcome | None = None
        try:
            inventory = sheets if isinstance(sheets, SheetInventory) else SheetInventory(sheets)
            with anyio.CancelScope() as scope:
                self._scope = scope
                outcome = await self._run(run_id, query, inventory)
            if outcome is None:
                logger.bind(run_id=run_id).info("Analysis cancelled")
                self.channel.publish_message(run_id, CANCELLED_MESSAGE, level="warning")
                outcome = PipelineOutcome(run_id=run_id, status=OutcomeStatus.CANCELLED, message=CANCELLED_MESSAGE)
            return outcome
        finally:
            self._scope = None
            self._set_state(PipelineState.IDLE)
            self._lock.release()

    async def _run(self, run_id: str, query: str, inventory: SheetInventory) -> PipelineOutcome:
        if not query or not query.strip():
            self._set_state(PipelineState.FAILED)
            self.channel.publish_message(run_id, EMPTY_QUERY_MESSAGE, level="error")
            return PipelineOutcome(run_id=run_id, status=OutcomeStatus.FAILED, message=EMPTY_QUERY_MESSAGE)

        if len(inventory) == 0:
            self.channel.publish_message(run_id, NO_DATA_MESSAGE)
            return PipelineOutcome(run_id=run_id, status=OutcomeStatus.NO_DATA, message=NO_DATA_MESSAGE)

        log = logger.bind(run_id=run_id)
        tasks: list[ExtractionTask] = []
        try:
            self._set_state(PipelineState.PLANNING)
            with _stage_deadline("planning", self.config.planning_timeout):
                plan = await self.planner.plan(query, inventory)

            if isinstance(plan, Clarification):
                self._set_state(PipelineState.CLARIFYING)
                self.channel.publish_message(run_id, plan.message)
                return PipelineOutcome(run_id=run_id, status=OutcomeStatus.CLARIFICATION, message=plan.message)

            tasks = plan.tasks
            self._set_state(PipelineState.EXTRACTING)
            with _stage_deadline("extraction", self.config.extraction_timeout):
                batches = await self.extractor.extract_all(tasks, inventory)

            self._set_state(PipelineState.REGISTERING)
            tables = await self._register(batches)
            primary = sanitize_table_name(tasks[0].file_id, tasks[0].sheet_id)

            self._set_state(PipelineState.CODE_GENERATING)
            with _stage_deadline("code generation", self.config.codegen_timeout):
                generated = await self.codegen.generate(query, tables, primary)

            self._set_state(PipelineState.EXECUTING)
            result = await self.engine.execute(generated.code, generated.result_kind, primary)
        except AnalystError as e:
            log.error(f"Analysis failed during {e.stage}: {e}")
            return self._failed(run_id, e.user_message, type(e).__name__, tasks)
        except Exception as e:
            log.exception(f"Unexpected failure during analysis: {e}")
            return self._failed(run_id, f"Error: Unexpected failure: {e}", type(e).__name__, tasks)

        if result.is_failure:
            message = f"Error: {result.error_message}"
            self.channel.publish_message(run_id, message, level="error")
            return PipelineOutcome(
                run_id=run_id, status=OutcomeStatus.ANSWERED, message=message, result=result, tasks=tasks
            )

        self.channel.publish_result(run_id, result.kind, result.payload)
        log.info(f"Analysis answered with a {result.kind} result")
        return PipelineOutcome(run_id=run_id, status=OutcomeStatus.ANSWERED, result=result, tasks=tasks)

    async def _register(self, batches: list[ExtractionBatch]) -> list[NamedTableInfo]:
        # Several tasks may target one sheet; the last batch registered under a name wins.
        tables: dict[str, NamedTableInfo] = {}
        for batch in batches:
            name = sanitize_table_name(batch.task.file_id, batch.task.sheet_id)
            await self.engine.register(name, batch.rows())
            tables[name] = NamedTableInfo(name=name, columns=["date", *batch.column_keys], legend=batch.legend)
        return list(tables.values())

    def _failed(self, run_id: str, message: str, error_type: str, tasks: list[ExtractionTask]) -> PipelineOutcome:
        self._set_state(PipelineState.FAILED)
        self.channel.publish_message(run_id, message, level="error")
        return PipelineOutcome(
            run_id=run_id, status=OutcomeStatus.FAILED, message=message, error_type=error_type, tasks=tasks
        )

    def _set_state(self, state: PipelineState) -> None:
        if state is self._state:
            return
        self._state = state
        if self.on_state_change is not None:
            self.on_state_change(state)
