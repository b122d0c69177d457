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

from loguru import logger

from coreason_analyst.config import AnalystConfig
from coreason_analyst.factory import EngineFactory
from coreason_analyst.models import ExecutionResult, ResultKind
from coreason_analyst.runtime import EngineRuntime
from coreason_analyst.utils.audit import AuditLogger


class SandboxEngine:
    """Session-owned handle to one sandbox engine context.

    The runtime is started lazily on first use and torn down explicitly with
    ``terminate()``. Concurrent first callers share a single initialization.
    """

    def __init__(
        self,
        config: AnalystConfig | None = None,
        runtime: EngineRuntime | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        """Initializes the SandboxEngine.

        Args:
            config: Configuration for the session.
            runtime: Optional runtime override; defaults to the configured backend.
            audit_logger: Optional audit logger override.
        """
        self.config = config or AnalystConfig()
        self.runtime: EngineRuntime = runtime or EngineFactory.get_runtime(self.config)
        self.audit_logger = audit_logger or AuditLogger(enabled=self.config.enable_audit_logging)
        self._start_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self.runtime.is_running

    async def ensure_started(self) -> None:
        """Start the runtime if it is not running; a no-op otherwise."""
        if self.runtime.is_running:
            return
        async with self._start_lock:
            if self.runtime.is_running:
                return
            logger.info(f"Initializing sandbox engine ({type(self.runtime).__name__})")
            await self.runtime.start()

    async def register(self, name: str, records: list[dict[str, Any]]) -> None:
        """Registers records as a named table, starting the engine if needed.

        Args:
            name: The sanitized table name.
            records: Row dicts for the table.
        """
        await self.ensure_started()
        await self.runtime.register(name, records)

    async def execute(self, code: str, result_kind: ResultKind, table_name: str) -> ExecutionResult:
        """Executes generated code against a registered table.

        Args:
            code: The generated source.
            result_kind: The declared kind of the ``result`` binding.
            table_name: The table bound to ``df``.

        Returns:
            ExecutionResult: The result of the execution.
        """
        await self.ensure_started()
        self.audit_logger.log_pre_execution(code, result_kind, table_name)
        return await self.runtime.execute(code, result_kind, table_name)

    async def terminate(self) -> None:
        """Tears down the engine context if it was started."""
        async with self._start_lock:
            if self.runtime.is_running:
                await self.runtime.terminate()
