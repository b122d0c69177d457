# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Request dispatch for the sandbox engine context.

``worker_main`` is the entry point of the isolated worker process: it handles one
message at a time, strictly in arrival order.
"""

from multiprocessing.queues import Queue
from typing import Any

from pydantic import ValidationError

from coreason_analyst.engine.interpreter import Interpreter
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
    ShutdownRequest,
    parse_request,
)


def handle_request(interpreter: Interpreter, request: EngineRequest) -> EngineResponse:
    """Apply one request to the interpreter.

    Infrastructure failures (bad table name, uninitialized interpreter, unknown table)
    become ``ErrorResponse``. Failures of the generated code itself are already folded
    into the ``ResultResponse`` payload by the interpreter.
    """
    try:
        if isinstance(request, InitRequest):
            interpreter.init()
            return ReadyResponse(request_id=request.request_id)
        if isinstance(request, RegisterRequest):
            interpreter.register(request.name, request.records)
            return AckResponse(request_id=request.request_id)
        if isinstance(request, ExecRequest):
            kind, payload = interpreter.execute(request.code, request.result_kind, request.table_name)
            return ResultResponse(request_id=request.request_id, result_kind=kind, payload=payload)
        if isinstance(request, ShutdownRequest):
            return AckResponse(request_id=request.request_id)
        return ErrorResponse(request_id=request.request_id, error=f"Unsupported request type: {request.type}")
    except Exception as e:
        return ErrorResponse(request_id=request.request_id, error=f"{type(e).__name__}: {e}")


def worker_main(inbox: "Queue[Any]", outbox: "Queue[Any]", allowed_modules: list[str]) -> None:
    """Serve requests from ``inbox`` until a shutdown request arrives."""
    interpreter = Interpreter(allowed_modules)
    while True:
        raw = inbox.get()
        try:
            request = parse_request(raw)
        except ValidationError as e:
            request_id = raw.get("request_id", "") if isinstance(raw, dict) else ""
            outbox.put(ErrorResponse(request_id=str(request_id), error=f"Malformed request: {e}").model_dump(mode="json"))
            continue

        response = handle_request(interpreter, request)
        outbox.put(response.model_dump(mode="json"))
        if isinstance(request, ShutdownRequest):
            break
