# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""
coreason-analyst
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import AnalystConfig
from .engine import SandboxEngine
from .exceptions import AnalystError, PipelineBusyError
from .factory import EngineFactory
from .models import ExecutionResult, PipelineOutcome, ResultKind, SheetImage, SheetInventory
from .orchestrator import Orchestrator, PipelineState
from .runtime import EngineRuntime
from .session import AnalystSession, AnalystSessionAsync

__all__ = [
    "AnalystConfig",
    "AnalystError",
    "AnalystSession",
    "AnalystSessionAsync",
    "EngineFactory",
    "EngineRuntime",
    "ExecutionResult",
    "Orchestrator",
    "PipelineBusyError",
    "PipelineOutcome",
    "PipelineState",
    "ResultKind",
    "SandboxEngine",
    "SheetImage",
    "SheetInventory",
]
