import httpx
import pytest
from conftest import ScriptedGateway, content_body, function_call_body

from coreason_analyst.config import AnalystConfig
from coreason_analyst.exceptions import ConfigurationError, TransportError
from coreason_analyst.gateway import GatewayReply, MalformedReply, ModelGateway, image_part, text_part


def test_reply_from_function_call() -> None:
    reply = GatewayReply.from_response(function_call_body("extract_tasks", {"tasks": []}))
    assert reply.function_name == "extract_tasks"
    assert reply.structured() == ("extract_tasks", {"tasks": []})


def test_reply_from_tool_calls() -> None:
    body = {
        "choices": [
            {
                "message": {
                    "content": None,
                    "tool_calls": [{"type": "function", "function": {"name": "f", "arguments": '{"a": 1}'}}],
                }
            }
        ]
    }
    assert GatewayReply.from_response(body).structured() == ("f", {"a": 1})


def test_reply_falls_back_to_content() -> None:
    reply = GatewayReply.from_response(content_body('{"clarification": "Which fund?"}'))
    assert reply.function_name is None
    assert reply.structured() == (None, {"clarification": "Which fund?"})


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"choices": []},
        content_body(""),
        content_body("not json"),
        content_body("[1, 2]"),
        function_call_body("f", "{}"),
        function_call_body("f", "{broken"),
    ],
)
def test_reply_malformed(body: dict) -> None:
    with pytest.raises(MalformedReply):
        GatewayReply.from_response(body).structured()


def test_message_parts() -> None:
    assert text_part("hi") == {"type": "text", "text": "hi"}
    assert image_part("data:image/png;base64,x") == {
        "type": "image_url",
        "image_url": {"url": "data:image/png;base64,x", "detail": "high"},
    }


@pytest.mark.asyncio
async def test_call_sends_function_calling_request(gateway: ModelGateway, scripted: ScriptedGateway) -> None:
    scripted.push(function_call_body("generate_python_code", {"python": "result = 1", "result_type": "value"}))

    functions = [{"name": "generate_python_code", "parameters": {}}]
    reply = await gateway.call([{"role": "user", "content": "hi"}], functions, 1000, "generate_python_code")

    assert reply.function_name == "generate_python_code"
    body = scripted.requests[0]
    assert body["model"] == "gpt-4.1"
    assert body["max_tokens"] == 1000
    assert body["response_format"] == {"type": "json_object"}
    assert body["function_call"] == {"name": "generate_python_code"}
    assert gateway.endpoint == "https://api.openai.com/v1/chat/completions"


@pytest.mark.asyncio
async def test_call_sends_bearer_credential(config: AnalystConfig) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=content_body("{}"))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gw = ModelGateway(config, client=client)
        await gw.call([], [{"name": "f"}], 10)

    assert seen[0].headers["Authorization"] == "Bearer test-key"
    assert "function_call" not in seen[0].content.decode()


@pytest.mark.asyncio
async def test_call_non_success_status(gateway: ModelGateway, scripted: ScriptedGateway) -> None:
    scripted.push({"error": {"message": "rate limited"}}, status_code=429)
    with pytest.raises(TransportError) as exc:
        await gateway.call([], [{"name": "f"}], 10)
    assert exc.value.status_code == 429
    assert "429" in str(exc.value)


@pytest.mark.asyncio
async def test_call_unreachable(config: AnalystConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gw = ModelGateway(config, client=client)
        with pytest.raises(TransportError, match="unreachable"):
            await gw.call([], [{"name": "f"}], 10)


@pytest.mark.asyncio
async def test_call_non_json_body_is_empty_reply(gateway: ModelGateway, scripted: ScriptedGateway) -> None:
    scripted.push_raw(httpx.Response(200, text="<html>oops</html>"))
    reply = await gateway.call([], [{"name": "f"}], 10)
    assert reply == GatewayReply()


@pytest.mark.asyncio
async def test_call_requires_credential() -> None:
    gw = ModelGateway(AnalystConfig(_env_file=None))
    with pytest.raises(ConfigurationError):
        await gw.call([], [{"name": "f"}], 10)
    await gw.aclose()


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open(config: AnalystConfig) -> None:
    client = httpx.AsyncClient()
    await ModelGateway(config, client=client).aclose()
    assert not client.is_closed
    await client.aclose()

    gw = ModelGateway(config)
    await gw.aclose()
    assert gw._client.is_closed
