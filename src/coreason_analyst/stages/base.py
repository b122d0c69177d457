# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from abc import ABC
from typing import Any

from loguru import logger

from coreason_analyst.config import AnalystConfig
from coreason_analyst.exceptions import AnalystError
from coreason_analyst.gateway import GatewayReply, MalformedReply, ModelGateway


class GatewayStage(ABC):
    """
    Base class for the validate-and-normalize stages that sit on the Model Gateway.

    Subclasses set ``error_cls`` to the stage's error type; every malformed reply is
    reported through it, while transport failures propagate as ``TransportError``.
    """

    error_cls: type[AnalystError] = AnalystError
    stage_name: str = "stage"

    def __init__(self, gateway: ModelGateway, config: AnalystConfig | None = None):
        self.gateway = gateway
        self.config = config or gateway.config

    def _structured(self, reply: GatewayReply) -> tuple[str | None, dict[str, Any]]:
        try:
            return reply.structured()
        except MalformedReply as e:
            logger.warning(f"{self.stage_name} reply could not be parsed: {e}")
            raise self.error_cls(f"Failed to parse {self.stage_name} response: {e}") from e
