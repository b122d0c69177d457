# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Messages exchanged between the orchestrator and the sandbox engine context.

Every request carries a ``request_id`` and every response echoes it, so responses are
matched explicitly instead of by arrival order.
"""

from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter

from coreason_analyst.models.results import ResultKind


def new_request_id() -> str:
    return uuid4().hex


class InitRequest(BaseModel):
    type: Literal["init"] = "init"
    request_id: str = Field(default_factory=new_request_id)


class RegisterRequest(BaseModel):
    type: Literal["register"] = "register"
    request_id: str = Field(default_factory=new_request_id)
    name: str = Field(..., min_length=1)
    records: list[dict[str, Any]]


class ExecRequest(BaseModel):
    type: Literal["exec"] = "exec"
    request_id: str = Field(default_factory=new_request_id)
    code: str
    result_kind: ResultKind
    table_name: str = Field(..., min_length=1)


class ShutdownRequest(BaseModel):
    type: Literal["shutdown"] = "shutdown"
    request_id: str = Field(default_factory=new_request_id)


class ReadyResponse(BaseModel):
    type: Literal["ready"] = "ready"
    request_id: str


class AckResponse(BaseModel):
    type: Literal["ack"] = "ack"
    request_id: str


class ResultResponse(BaseModel):
    type: Literal["result"] = "result"
    request_id: str
    result_kind: ResultKind
    payload: Any = None


class ErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    request_id: str
    error: str


EngineRequest = Annotated[
    InitRequest | RegisterRequest | ExecRequest | ShutdownRequest,
    Field(discriminator="type"),
]
EngineResponse = Annotated[
    ReadyResponse | AckResponse | ResultResponse | ErrorResponse,
    Field(discriminator="type"),
]

_REQUEST_ADAPTER: TypeAdapter[EngineRequest] = TypeAdapter(EngineRequest)
_RESPONSE_ADAPTER: TypeAdapter[EngineResponse] = TypeAdapter(EngineResponse)


def parse_request(raw: Any) -> EngineRequest:
    """Validate a raw request dict. Raises pydantic.ValidationError when malformed."""
    return _REQUEST_ADAPTER.validate_python(raw)


def parse_response(raw: Any) -> EngineResponse:
    """Validate a raw response dict. Raises pydantic.ValidationError when malformed."""
    return _RESPONSE_ADAPTER.validate_python(raw)
