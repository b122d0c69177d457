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
import multiprocessing
import queue
from collections import deque
from collections.abc import Iterable
from multiprocessing.process import BaseProcess
from typing import Any

from loguru import logger
from pydantic import ValidationError

from coreason_analyst.engine.protocol import (
    EngineRequest,
    EngineResponse,
    ShutdownRequest,
    parse_response,
)
from coreason_analyst.engine.worker import worker_main
from coreason_analyst.exceptions import SandboxFault, StageTimeoutError
from coreason_analyst.runtimes.base import ProtocolRuntime


class ProcessRuntime(ProtocolRuntime):
    """
    Worker-process implementation of the EngineRuntime.

    The interpreter lives in a spawned child process; messages travel over a pair of
    multiprocessing queues and are matched on ``request_id``.
    """

    def __init__(
        self,
        allowed_modules: Iterable[str] = ("pandas", "numpy"),
        timeout: float = 60.0,
        init_timeout: float = 120.0,
        poll_interval: float = 0.5,
    ):
        super().__init__(allowed_modules=allowed_modules, timeout=timeout, init_timeout=init_timeout)
        self.poll_interval = poll_interval
        self._ctx = multiprocessing.get_context("spawn")
        self.process: BaseProcess | None = None
        self.inbox: Any = None
        self.outbox: Any = None
        self._ready = False
        self._received: deque[Any] = deque()
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._ready and self.process is not None and self.process.is_alive()

    async def start(self) -> None:
        """
        Spawn the worker process and load the interpreter.
        """
        if self.is_running:
            return

        logger.info("Starting sandbox worker process")
        self.inbox = self._ctx.Queue()
        self.outbox = self._ctx.Queue()
        self.process = self._ctx.Process(
            target=worker_main,
            args=(self.inbox, self.outbox, self.allowed_modules),
            name="coreason-analyst-engine",
            daemon=True,
        )
        self.process.start()

        try:
            await self._initialize()
        except Exception as e:
            logger.error(f"Failed to start sandbox worker: {e}")
            self._kill()
            raise

        self._ready = True
        logger.info(f"Sandbox worker ready (pid {self.process.pid})")

    async def _send(self, request: EngineRequest, timeout: float, stage: str) -> EngineResponse:
        async with self._lock:
            if self.process is None or self.inbox is None:
                raise SandboxFault("Sandbox not started")

            self.inbox.put(request.model_dump(mode="json"))
            try:
                return await asyncio.wait_for(self._await_response(request.request_id), timeout=timeout)
            except asyncio.TimeoutError as e:
                logger.error(f"{stage.capitalize()} timed out ({timeout}s). Terminating sandbox worker; state is lost.")
                self._kill()
                raise StageTimeoutError(stage, timeout) from e

    async def _await_response(self, request_id: str) -> EngineResponse:
        while True:
            if not self._received:
                await asyncio.to_thread(self._poll)
            if not self._received:
                if self.process is None or not self.process.is_alive():
                    exit_code = self.process.exitcode if self.process else None
                    self._kill()
                    raise SandboxFault(f"Sandbox worker exited unexpectedly (exit code {exit_code})")
                continue

            raw = self._received.popleft()
            try:
                response = parse_response(raw)
            except ValidationError as e:
                raise SandboxFault(f"Malformed response from sandbox: {e}") from e

            if response.request_id != request_id:
                logger.warning(f"Discarding stale sandbox response {response.request_id} ({response.type})")
                continue
            return response

    def _poll(self) -> None:
        """Move at most one message from the outbox into the receive buffer.

        A poll that outlives a cancelled wait still lands its message in the buffer,
        where the next request picks it up.
        """
        outbox = self.outbox
        if outbox is None:
            return
        try:
            self._received.append(outbox.get(timeout=self.poll_interval))
        except queue.Empty:
            pass

    def _kill(self) -> None:
        """Forcefully stop the worker; the next start() spawns a fresh one."""
        self._ready = False
        process, self.process = self.process, None
        if process is not None and process.is_alive():
            process.terminate()
            process.join(timeout=5)
        for q in (self.inbox, self.outbox):
            if q is not None:
                q.close()
                q.cancel_join_thread()
        self.inbox = None
        self.outbox = None
        self._received.clear()

    async def terminate(self) -> None:
        """
        Ask the worker to shut down, then make sure it is gone.
        """
        if self.process is None:
            logger.warning("Attempted to terminate non-existent sandbox worker")
            return

        logger.info("Terminating sandbox worker")
        if self.process.is_alive():
            try:
                await self._send(ShutdownRequest(), 5.0, "shutdown")
            except (SandboxFault, StageTimeoutError) as e:
                logger.warning(f"Sandbox worker did not shut down cleanly: {e}")
        if self.process is not None:
            await asyncio.to_thread(self.process.join, 5)
        self._kill()
