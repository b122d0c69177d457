# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

import os
from typing import Protocol, runtime_checkable

from loguru import logger


@runtime_checkable
class SecretClientProtocol(Protocol):
    """
    Protocol for a secret store client to allow dependency injection and testing.
    """

    def get_secret(self, key: str) -> str | None:
        """
        Retrieve a secret by key.
        """
        ...


class SecretResolver:
    """Resolves secrets from an injected secret store, then from the environment.

    The Model Gateway credential is the only secret the analyst needs today.
    """

    ENV_PREFIX = "COREASON_ANALYST_"

    def __init__(self, client: SecretClientProtocol | None = None):
        """Initializes the SecretResolver.

        Args:
            client: Optional secret store client consulted before the environment.
        """
        self.client = client

    def get_secret(self, key: str) -> str | None:
        """Fetch a secret.

        Looks up the injected client first (failures are logged and ignored), then
        ``key`` and ``COREASON_ANALYST_<key>`` in the environment.

        Args:
            key: The secret name, e.g. ``OPENAI_API_KEY``.

        Returns:
            str | None: The secret value, or None when it is not configured.
        """
        if self.client:
            try:
                val = self.client.get_secret(key)
                if val:
                    return val
            except Exception as e:
                logger.warning(f"Failed to fetch secret {key} from secret store: {e}")

        val = os.getenv(key)
        if not val:
            val = os.getenv(f"{self.ENV_PREFIX}{key}")

        if not val:
            logger.debug(f"Secret {key} not found in environment.")

        return val
