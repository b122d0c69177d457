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
from collections.abc import Iterable

from loguru import logger

from coreason_analyst.engine.interpreter import Interpreter
from coreason_analyst.engine.protocol import EngineRequest, EngineResponse
from coreason_analyst.engine.worker import handle_request
from coreason_analyst.exceptions import SandboxFault, StageTimeoutError
from coreason_analyst.runtimes.base import ProtocolRuntime


class InlineRuntime(ProtocolRuntime):
    """
    In-process implementation of the EngineRuntime.

    Runs the same interpreter in the host process on a worker thread. Intended for
    tests and hosts that cannot spawn processes; a timed-out run cannot be interrupted,
    so the interpreter is discarded instead.
    """

    def __init__(
        self,
        allowed_modules: Iterable[str] = ("pandas", "numpy"),
        timeout: float = 60.0,
        init_timeout: float = 120.0,
    ):
        super().__init__(allowed_modules=allowed_modules, timeout=timeout, init_timeout=init_timeout)
        self.interpreter: Interpreter | None = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self.interpreter is not None and self.interpreter.ready

    async def start(self) -> None:
        if self.is_running:
            return
        logger.info("Starting inline sandbox interpreter")
        self.interpreter = Interpreter(self.allowed_modules)
        try:
            await self._initialize()
        except Exception:
            self.interpreter = None
            raise

    async def _send(self, request: EngineRequest, timeout: float, stage: str) -> EngineResponse:
        async with self._lock:
            interpreter = self.interpreter
            if interpreter is None:
                raise SandboxFault("Sandbox not started")
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(handle_request, interpreter, request),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                logger.error(f"{stage.capitalize()} timed out ({timeout}s). Discarding inline interpreter.")
                self.interpreter = None
                raise StageTimeoutError(stage, timeout) from e

    async def terminate(self) -> None:
        if self.interpreter is None:
            logger.warning("Attempted to terminate non-existent inline interpreter")
            return
        logger.info("Terminating inline sandbox interpreter")
        self.interpreter = None
