# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from collections.abc import Iterable
from contextlib import ExitStack
from uuid import uuid4

import httpx
from anyio.from_thread import BlockingPortal, start_blocking_portal
from anyio.streams.memory import MemoryObjectReceiveStream
from loguru import logger

from coreason_analyst.channel import ChannelEvent, ResultChannel
from coreason_analyst.config import AnalystConfig
from coreason_analyst.engine import SandboxEngine
from coreason_analyst.gateway import ModelGateway
from coreason_analyst.models import PipelineOutcome, SheetImage, SheetInventory
from coreason_analyst.orchestrator import Orchestrator, StateListener
from coreason_analyst.runtime import EngineRuntime
from coreason_analyst.stages import CodeGenerator, Extractor, TaskPlanner


class AnalystSessionAsync:
    """Async-native analyst session (The Core).

    Owns the gateway client, the sandbox engine handle, the result channel and the
    orchestrator. The engine is started lazily on the first query and torn down when
    the session exits.
    """

    def __init__(
        self,
        config: AnalystConfig | None = None,
        client: httpx.AsyncClient | None = None,
        runtime: EngineRuntime | None = None,
        on_state_change: StateListener | None = None,
    ):
        """Initializes the AnalystSessionAsync.

        Args:
            config: Configuration for the session.
            client: Optional httpx.AsyncClient for connection pooling.
            runtime: Optional engine runtime override.
            on_state_change: Optional callback invoked on every pipeline state change.
        """
        self.config = config or AnalystConfig()
        self.session_id = str(uuid4())
        self.gateway = ModelGateway(self.config, client)
        self.engine = SandboxEngine(self.config, runtime=runtime)
        self.channel = ResultChannel()
        self.orchestrator = Orchestrator(
            planner=TaskPlanner(self.gateway, self.config),
            extractor=Extractor(self.gateway, self.config),
            codegen=CodeGenerator(self.gateway, self.config),
            engine=self.engine,
            channel=self.channel,
            config=self.config,
            on_state_change=on_state_change,
        )

    async def __aenter__(self) -> "AnalystSessionAsync":
        """Validates the credential; the engine itself starts on first use."""
        self.config.require_credential()
        logger.info("Analyst session opened", session_id=self.session_id)
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Tears down the engine, closes the channel and the owned HTTP client."""
        try:
            await self.engine.terminate()
        finally:
            self.channel.close()
            await self.gateway.aclose()
            logger.info("Analyst session closed", session_id=self.session_id)

    async def ask(self, query: str, sheets: SheetInventory | Iterable[SheetImage]) -> PipelineOutcome:
        """Answers a natural-language query about the given sheets.

        Args:
            query: The user's question.
            sheets: The rasterized sheets currently loaded.

        Returns:
            PipelineOutcome: How the run ended, with the result when it reached the sandbox.

        Raises:
            PipelineBusyError: If a previous query is still running.
        """
        return await self.orchestrator.run(query, sheets)

    def subscribe(self, buffer: int = 32) -> MemoryObjectReceiveStream[ChannelEvent]:
        """Returns a stream of result and message events for this session."""
        return self.channel.subscribe(buffer)

    def cancel(self) -> bool:
        """Cancels the in-flight query, if any."""
        return self.orchestrator.cancel()


class AnalystSession:
    """Sync Facade for AnalystSessionAsync (The Facade).

    Runs the async session on a background event loop through an anyio blocking portal,
    so the engine and HTTP client outlive individual calls.
    """

    def __init__(
        self,
        config: AnalystConfig | None = None,
        client: httpx.AsyncClient | None = None,
        runtime: EngineRuntime | None = None,
    ):
        """Initializes the AnalystSession facade.

        Args:
            config: Configuration for the session.
            client: Optional httpx.AsyncClient.
            runtime: Optional engine runtime override.
        """
        self._config = config
        self._client = client
        self._runtime = runtime
        self._async: AnalystSessionAsync | None = None
        self._portal: BlockingPortal | None = None
        self._stack = ExitStack()

    def __enter__(self) -> "AnalystSession":
        """Context entry point."""
        self._portal = self._stack.enter_context(start_blocking_portal())
        try:
            self._async = self._portal.call(self._build)
            self._portal.call(self._async.__aenter__)
        except BaseException:
            self._stack.close()
            self._portal = None
            raise
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context exit point."""
        try:
            if self._portal is not None and self._async is not None:
                self._portal.call(self._async.__aexit__, exc_type, exc_val, exc_tb)
        finally:
            self._stack.close()
            self._portal = None
            self._async = None

    async def _build(self) -> AnalystSessionAsync:
        # Built on the portal's loop so its locks bind there.
        return AnalystSessionAsync(self._config, self._client, self._runtime)

    def ask(self, query: str, sheets: SheetInventory | Iterable[SheetImage]) -> PipelineOutcome:
        """Answers a query synchronously.

        Args:
            query: The user's question.
            sheets: The rasterized sheets currently loaded.

        Returns:
            PipelineOutcome: How the run ended.
        """
        if self._portal is None or self._async is None:
            raise RuntimeError("AnalystSession must be used as a context manager")
        return self._portal.call(self._async.ask, query, list(sheets))
