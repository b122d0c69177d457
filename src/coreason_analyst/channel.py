# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from typing import Any, Literal

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from loguru import logger
from pydantic import BaseModel

from coreason_analyst.models import ResultKind, decode_payload


class ResultEvent(BaseModel):
    """A finished execution result for display."""

    type: Literal["result"] = "result"
    run_id: str
    result_kind: ResultKind
    payload: Any = None

    def decoded(self) -> Any:
        return decode_payload(self.payload)


class MessageEvent(BaseModel):
    """A user-facing text message (clarification, error, notice)."""

    type: Literal["message"] = "message"
    run_id: str
    level: Literal["info", "warning", "error"] = "info"
    text: str


ChannelEvent = ResultEvent | MessageEvent


class ResultChannel:
    """Fan-out of pipeline events to every current subscriber.

    Publishing never blocks the pipeline: events for a subscriber whose buffer is
    full, or whose receive side has been closed, are dropped.
    """

    def __init__(self) -> None:
        self._subscribers: list[MemoryObjectSendStream[ChannelEvent]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, buffer: int = 32) -> MemoryObjectReceiveStream[ChannelEvent]:
        """Return a receive stream that sees every event published from now on."""
        if self._closed:
            raise RuntimeError("Result channel is closed")
        send, receive = anyio.create_memory_object_stream[ChannelEvent](buffer)
        self._subscribers.append(send)
        return receive

    def publish(self, event: ChannelEvent) -> None:
        if self._closed:
            logger.warning(f"Dropping {event.type} event for run {event.run_id}: channel closed")
            return

        alive: list[MemoryObjectSendStream[ChannelEvent]] = []
        for stream in self._subscribers:
            try:
                stream.send_nowait(event)
            except anyio.WouldBlock:
                logger.warning(f"Subscriber buffer full; dropped {event.type} event for run {event.run_id}")
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                stream.close()
                continue
            alive.append(stream)
        self._subscribers = alive

    def publish_result(self, run_id: str, result_kind: ResultKind, payload: Any) -> None:
        self.publish(ResultEvent(run_id=run_id, result_kind=result_kind, payload=payload))

    def publish_message(self, run_id: str, text: str, level: Literal["info", "warning", "error"] = "info") -> None:
        self.publish(MessageEvent(run_id=run_id, level=level, text=text))

    def close(self) -> None:
        """Close every subscriber stream; receivers finish their iteration."""
        self._closed = True
        for stream in self._subscribers:
            stream.close()
        self._subscribers = []
