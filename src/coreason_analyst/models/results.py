# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Data models for generated code and sandbox execution results."""

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from coreason_analyst.exceptions import ERROR_SENTINEL


class ResultKind(StrEnum):
    """The declared shape of a pipeline's final output."""

    PLOT = "plot"
    TABLE = "table"
    VALUE = "value"


def decode_payload(payload: Any) -> Any:
    """Accept a payload either as a JSON-encoded string or as an already-structured value.

    Strings that are not valid JSON (including in-band error strings) are returned as-is.
    """
    if isinstance(payload, str | bytes):
        try:
            return json.loads(payload)
        except ValueError:
            return payload
    return payload


class GeneratedCode(BaseModel):
    """Analysis code produced by the code generator.

    Attributes:
        code: Python source that assigns its output to ``result``.
        result_kind: The declared kind of ``result``.
    """

    code: str = Field(..., description="Python source that assigns its output to `result`.")
    result_kind: ResultKind = Field(..., description="The declared kind of the `result` binding.")

    @field_validator("code")
    @classmethod
    def _code_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("code must not be blank")
        return value


class ExecutionResult(BaseModel):
    """
    Encapsulates the outcome of running generated code in the sandbox.

    A payload that is a string starting with ``ERROR_SENTINEL`` denotes a failure raised
    by the generated code itself, as opposed to a failure of the sandbox channel.
    """

    kind: ResultKind = Field(..., description="The declared result kind echoed by the engine.")
    payload: Any = Field(None, description="A JSON-compatible value or a tagged error string.")

    @property
    def is_failure(self) -> bool:
        return isinstance(self.payload, str) and self.payload.startswith(ERROR_SENTINEL)

    @property
    def error_message(self) -> str | None:
        if not self.is_failure:
            return None
        return str(self.payload)[len(ERROR_SENTINEL) :].strip()

    def decoded(self) -> Any:
        return decode_payload(self.payload)
