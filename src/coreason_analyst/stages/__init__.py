"""
Gateway-backed pipeline stages: planning, extraction and code generation.
"""

from .codegen import CodeGenerator
from .extractor import Extractor
from .planner import Clarification, Plan, TaskList, TaskPlanner

__all__ = ["Clarification", "CodeGenerator", "Extractor", "Plan", "TaskList", "TaskPlanner"]
