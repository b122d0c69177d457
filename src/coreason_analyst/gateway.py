# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

"""Thin adapter over the Model Gateway's chat-completions function-calling contract."""

import json
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from coreason_analyst.config import AnalystConfig
from coreason_analyst.exceptions import TransportError

Message = dict[str, Any]


class MalformedReply(ValueError):
    """The gateway answered 200 but the body is not the structured shape we asked for."""


def text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def image_part(url: str, detail: str = "high") -> dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url, "detail": detail}}


class GatewayReply(BaseModel):
    """The useful part of a chat-completions response.

    Attributes:
        function_name: Name of the function the model called, if any.
        arguments: The raw function-call arguments (usually a JSON string).
        content: The plain message content (JSON-encoded text fallback).
    """

    function_name: str | None = None
    arguments: str | dict[str, Any] | None = None
    content: str | None = None

    @classmethod
    def from_response(cls, body: Any) -> "GatewayReply":
        try:
            message = body["choices"][0]["message"]
        except (KeyError, IndexError, TypeError):
            return cls()
        if not isinstance(message, dict):
            return cls()

        call = message.get("function_call")
        if not call and message.get("tool_calls"):
            call = (message["tool_calls"][0] or {}).get("function")
        if isinstance(call, dict):
            return cls(
                function_name=call.get("name"),
                arguments=call.get("arguments"),
                content=message.get("content"),
            )
        return cls(content=message.get("content"))

    def structured(self) -> tuple[str | None, dict[str, Any]]:
        """Return ``(function_name, payload)``.

        The function-call payload is preferred; JSON-encoded message content is the fallback.

        Raises:
            MalformedReply: If neither parses into a non-empty JSON object.
        """
        if self.arguments not in (None, "", "{}", {}):
            payload = self._parse(self.arguments)
            if payload is not None:
                return self.function_name, payload
            raise MalformedReply(f"Function call arguments are not a JSON object: {str(self.arguments)[:200]}")

        if self.content:
            payload = self._parse(self.content)
            if payload is not None:
                return self.function_name, payload
            raise MalformedReply(f"Message content is not a JSON object: {self.content[:200]}")

        raise MalformedReply("Response missing valid message structure")

    @staticmethod
    def _parse(raw: str | dict[str, Any]) -> dict[str, Any] | None:
        if isinstance(raw, dict):
            return raw
        try:
            parsed = json.loads(raw)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None


class ModelGateway:
    """Async client for the external reasoning service.

    Only the request/response contract is owned here; the service itself is external.
    """

    def __init__(self, config: AnalystConfig, client: httpx.AsyncClient | None = None):
        """Initializes the ModelGateway.

        Args:
            config: Session configuration carrying the gateway URL, model and credential.
            client: Optional httpx.AsyncClient for connection pooling.
        """
        self.config = config
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.config.gateway_url.rstrip('/')}/chat/completions"

    async def call(
        self,
        messages: list[Message],
        functions: list[dict[str, Any]],
        max_tokens: int,
        function_call: str | None = None,
    ) -> GatewayReply:
        """Send one function-calling request.

        Args:
            messages: Chat messages (system + user, possibly multimodal).
            functions: Function schemas the model may call.
            max_tokens: Response token budget.
            function_call: Force a specific function by name.

        Returns:
            GatewayReply: The parsed reply; may be empty when the body is unexpected.

        Raises:
            TransportError: If the gateway is unreachable or returns a non-success status.
        """
        body: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
            "functions": functions,
            "messages": messages,
        }
        if function_call:
            body["function_call"] = {"name": function_call}

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.require_credential()}",
        }

        logger.debug(
            "Calling Model Gateway",
            model=self.config.model,
            functions=[f["name"] for f in functions],
            forced=function_call,
        )
        try:
            response = await self._client.post(self.endpoint, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Model Gateway unreachable: {e}")
            raise TransportError(f"Model Gateway unreachable: {e}") from e

        if not response.is_success:
            logger.error(f"Model Gateway error {response.status_code}: {response.text[:500]}")
            raise TransportError(
                f"Model Gateway error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Model Gateway returned a non-JSON body")
            return GatewayReply()

        return GatewayReply.from_response(payload)

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()
