import json
import os
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

from coreason_analyst.config import AnalystConfig
from coreason_analyst.gateway import ModelGateway
from coreason_analyst.models import SheetImage, SheetInventory


def function_call_body(name: str, arguments: dict[str, Any] | str) -> dict[str, Any]:
    """A chat-completions response whose message calls ``name``."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "function_call": {"name": name, "arguments": arguments},
                }
            }
        ]
    }


def content_body(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class ScriptedGateway:
    """Serves queued response bodies to a ModelGateway through httpx.MockTransport."""

    def __init__(self) -> None:
        self.responses: list[httpx.Response] = []
        self.requests: list[dict[str, Any]] = []

    def push(self, body: dict[str, Any], status_code: int = 200) -> None:
        self.responses.append(httpx.Response(status_code, json=body))

    def push_raw(self, response: httpx.Response) -> None:
        self.responses.append(response)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if not self.responses:
            raise AssertionError(f"Unexpected gateway call: {request.url}")
        return self.responses.pop(0)

    @property
    def called_functions(self) -> list[list[str]]:
        return [[f["name"] for f in body["functions"]] for body in self.requests]


@pytest.fixture(autouse=True)
def clean_env() -> Iterator[None]:
    with patch.dict("os.environ"):
        for key in list(os.environ):
            if key == "OPENAI_API_KEY" or key.startswith("COREASON_ANALYST_"):
                del os.environ[key]
        yield


@pytest.fixture
def config() -> AnalystConfig:
    return AnalystConfig(gateway_api_key="test-key", runtime="inline", _env_file=None)


@pytest.fixture
def scripted() -> ScriptedGateway:
    return ScriptedGateway()


@pytest_asyncio.fixture
async def gateway(config: AnalystConfig, scripted: ScriptedGateway) -> Any:
    client = httpx.AsyncClient(transport=httpx.MockTransport(scripted.handler))
    gw = ModelGateway(config, client=client)
    yield gw
    await client.aclose()


@pytest.fixture
def make_sheet() -> Callable[..., SheetImage]:
    def _make(file_id: str = "fund_x.xlsx", sheet_id: str = "Returns") -> SheetImage:
        return SheetImage.from_png_bytes(file_id, sheet_id, b"\x89PNG fake", width=800, height=600)

    return _make


@pytest.fixture
def inventory(make_sheet: Callable[..., SheetImage]) -> SheetInventory:
    return SheetInventory(
        [
            make_sheet("fund_x.xlsx", "Returns"),
            make_sheet("fund_y.xlsx", "Returns"),
        ]
    )
