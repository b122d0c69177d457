# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from coreason_analyst.exceptions import PlanningError
from coreason_analyst.gateway import image_part, text_part
from coreason_analyst.models import ExtractionTask, SheetInventory
from coreason_analyst.stages.base import GatewayStage
from coreason_analyst.stages.prompts import (
    CLARIFY_USER_INTENT,
    EXTRACT_TASKS,
    PLANNER_FUNCTIONS,
    PLANNER_SYSTEM_PROMPT,
    planner_user_text,
)

DEFAULT_CLARIFICATION = "Sorry, I need more information to proceed."


class Clarification(BaseModel):
    """The planner needs more information; ``message`` is shown to the user verbatim."""

    message: str


class TaskList(BaseModel):
    """An ordered, validated set of extraction tasks."""

    tasks: list[ExtractionTask]


Plan = Clarification | TaskList


class TaskPlanner(GatewayStage):
    """Turns a query and a sheet inventory into a clarification or a task list."""

    error_cls = PlanningError
    stage_name = "planner"

    async def plan(self, query: str, inventory: SheetInventory) -> Plan:
        """Ask the gateway for a plan and validate it against the inventory.

        Args:
            query: The user's question.
            inventory: The sheets available to this run.

        Returns:
            Plan: Exactly one of ``Clarification`` or ``TaskList``.

        Raises:
            PlanningError: If the reply is malformed, ambiguous, or references unknown sheets.
            TransportError: If the gateway call itself fails.
        """
        sheet_lines = [f"- File: {s.file_id}, Sheet: {s.sheet_id}" for s in inventory]
        messages = [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [text_part(planner_user_text(query, sheet_lines))] + [image_part(s.image) for s in inventory],
            },
        ]
        logger.info(f"Planning query against {len(inventory)} sheet(s)")
        reply = await self.gateway.call(messages, PLANNER_FUNCTIONS, max_tokens=self.config.planner_max_tokens)

        if reply.function_name == CLARIFY_USER_INTENT:
            args = self._arguments(reply.arguments)
            if "tasks" in args:
                raise PlanningError("Planner returned both a clarification and extraction tasks")
            return Clarification(message=self._clarification_text(args))

        name, payload = self._structured(reply)
        return self._interpret(name, payload, inventory)

    def _interpret(self, name: str | None, payload: dict[str, Any], inventory: SheetInventory) -> Plan:
        clarification = payload.get("clarification")
        has_clarification = isinstance(clarification, str) and bool(clarification.strip())
        has_tasks = "tasks" in payload

        if has_clarification and has_tasks:
            raise PlanningError("Planner returned both a clarification and extraction tasks")
        if has_clarification:
            return Clarification(message=clarification)
        if not has_tasks:
            raise PlanningError(f"Planner response missing tasks array (function: {name or 'none'})")
        if name not in (None, EXTRACT_TASKS):
            raise PlanningError(f"Planner called unexpected function '{name}'")

        raw_tasks = payload["tasks"]
        if not isinstance(raw_tasks, list) or not raw_tasks:
            raise PlanningError("Planner response tasks must be a non-empty array")

        try:
            tasks = [ExtractionTask.model_validate(raw) for raw in raw_tasks]
        except ValidationError as e:
            raise PlanningError(f"Planner returned a malformed task: {e}") from e

        self._check_references(tasks, inventory)
        logger.info(f"Planner produced {len(tasks)} task(s)")
        return TaskList(tasks=tasks)

    @staticmethod
    def _check_references(tasks: list[ExtractionTask], inventory: SheetInventory) -> None:
        valid_ids = inventory.file_ids
        invalid = [t.file_id for t in tasks if t.file_id not in valid_ids]
        if invalid:
            raise PlanningError(
                f"Tasks contain invalid fileIds. Got: {', '.join(invalid)}. Expected one of: {', '.join(valid_ids)}"
            )
        missing = [f"{t.file_id}/{t.sheet_id}" for t in tasks if inventory.find(t.file_id, t.sheet_id) is None]
        if missing:
            raise PlanningError(f"Tasks reference unknown sheets: {', '.join(missing)}")

    @staticmethod
    def _arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
        if isinstance(arguments, dict):
            return arguments
        try:
            parsed = json.loads(arguments or "")
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @staticmethod
    def _clarification_text(args: dict[str, Any]) -> str:
        message = args.get("clarification")
        if not isinstance(message, str) or not message.strip():
            return DEFAULT_CLARIFICATION
        return message
