# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from abc import ABC, abstractmethod
from typing import Any

from coreason_analyst.models import ExecutionResult, ResultKind


class EngineRuntime(ABC):
    """
    Abstract base class for sandbox engine runtimes (e.g., worker process, inline).
    Follows the Strategy Pattern.
    """

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """Whether the runtime has been started and is able to take requests."""
        pass  # pragma: no cover

    @abstractmethod
    async def start(self) -> None:
        """Boot the execution context and load the interpreter.

        Raises:
            SandboxFault: If the interpreter fails to initialize.
            StageTimeoutError: If initialization exceeds its time budget.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def register(self, name: str, records: list[dict[str, Any]]) -> None:
        """Materialize records as a named table, overwriting any table of the same name.

        Args:
            name: The sanitized table name.
            records: Row dicts; ``{value, label}`` pairs are unwrapped to bare values.

        Raises:
            SandboxFault: If the engine rejects the table or the channel fails.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def execute(self, code: str, result_kind: ResultKind, table_name: str) -> ExecutionResult:
        """Run generated code against a registered table.

        Args:
            code: The generated source; it must assign ``result``.
            result_kind: The declared kind of ``result``.
            table_name: The table bound to ``df`` for the run. Mandatory.

        Returns:
            ExecutionResult: The marshalled result, or an in-band tagged failure.

        Raises:
            SandboxFault: If the channel fails or the request is rejected.
            StageTimeoutError: If execution exceeds the configured timeout.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def terminate(self) -> None:
        """Tear down the execution context and release its resources."""
        pass  # pragma: no cover
