# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

import time
from abc import abstractmethod
from collections.abc import Iterable
from typing import Any

from loguru import logger

from coreason_analyst.engine.protocol import (
    AckResponse,
    EngineRequest,
    EngineResponse,
    ErrorResponse,
    ExecRequest,
    InitRequest,
    ReadyResponse,
    RegisterRequest,
    ResultResponse,
)
from coreason_analyst.exceptions import SandboxFault
from coreason_analyst.models import ExecutionResult, ResultKind
from coreason_analyst.runtime import EngineRuntime


class ProtocolRuntime(EngineRuntime):
    """
    Shared request/response handling for runtimes that speak the engine protocol.

    Subclasses provide ``_send``, which delivers one request and returns the response
    carrying the same ``request_id``.
    """

    def __init__(
        self,
        allowed_modules: Iterable[str] = ("pandas", "numpy"),
        timeout: float = 60.0,
        init_timeout: float = 120.0,
    ):
        self.allowed_modules = sorted(set(allowed_modules))
        self.timeout = timeout
        self.init_timeout = init_timeout

    @abstractmethod
    async def _send(self, request: EngineRequest, timeout: float, stage: str) -> EngineResponse:
        pass  # pragma: no cover

    async def _initialize(self) -> None:
        response = await self._send(InitRequest(), self.init_timeout, "engine init")
        if isinstance(response, ErrorResponse):
            raise SandboxFault(f"Sandbox init failed: {response.error}")
        if not isinstance(response, ReadyResponse):
            raise SandboxFault(f"Unexpected response to init: {response.type}")

    async def register(self, name: str, records: list[dict[str, Any]]) -> None:
        if not self.is_running:
            raise SandboxFault("Sandbox not started")

        logger.info(f"Registering table '{name}' with {len(records)} records")
        response = await self._send(RegisterRequest(name=name, records=records), self.timeout, "register")
        if isinstance(response, ErrorResponse):
            raise SandboxFault(f"Failed to register table '{name}': {response.error}")
        if not isinstance(response, AckResponse):
            raise SandboxFault(f"Unexpected response to register: {response.type}")

    async def execute(self, code: str, result_kind: ResultKind, table_name: str) -> ExecutionResult:
        if not self.is_running:
            raise SandboxFault("Sandbox not started")

        logger.info(f"Executing {result_kind} code against '{table_name}'")
        start_time = time.time()
        response = await self._send(
            ExecRequest(code=code, result_kind=result_kind, table_name=table_name),
            self.timeout,
            "execution",
        )
        duration = time.time() - start_time

        if isinstance(response, ErrorResponse):
            raise SandboxFault(f"Failed to execute code: {response.error}")
        if not isinstance(response, ResultResponse):
            raise SandboxFault(f"Unexpected response to exec: {response.type}")

        result = ExecutionResult(kind=response.result_kind, payload=response.payload)
        if result.is_failure:
            logger.warning(f"Generated code failed in sandbox after {duration:.4f}s: {result.error_message}")
        else:
            logger.info(f"Execution finished in {duration:.4f}s")
        return result
