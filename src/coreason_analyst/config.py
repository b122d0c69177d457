# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_analyst

from typing import Any, ClassVar, Literal

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from coreason_analyst.exceptions import ConfigurationError
from coreason_analyst.utils.secrets import SecretClientProtocol, SecretResolver


class SecretsSettingsSource(PydanticBaseSettingsSource):
    """
    Custom Pydantic Settings Source that resolves secrets through SecretResolver.
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Required by the abstract base class; unused because __call__ returns the full dict.
        return None, field_name, False  # pragma: no cover

    def __call__(self) -> dict[str, Any]:
        resolver = SecretResolver(getattr(self.settings_cls, "secret_client", None))
        secrets: dict[str, Any] = {}

        # Config Field -> Secret Key
        mapping = {
            "gateway_api_key": "OPENAI_API_KEY",
        }

        for field, key in mapping.items():
            val = resolver.get_secret(key)
            if val:
                secrets[field] = val

        return secrets


class AnalystConfig(BaseSettings):
    """
    Configuration for an analyst session.
    """

    # Model Gateway
    gateway_url: str = "https://api.openai.com/v1"
    gateway_api_key: str | None = None
    model: str = "gpt-4.1"
    planner_max_tokens: int = 1000
    extractor_max_tokens: int = 32_768
    codegen_max_tokens: int = 1000
    request_timeout: float = 120.0

    # Sandbox Engine
    runtime: Literal["process", "inline"] = "process"
    allowed_modules: set[str] = {"pandas", "numpy"}
    engine_init_timeout: float = 120.0

    # Per-stage time budgets (seconds)
    planning_timeout: float = 180.0
    extraction_timeout: float = 300.0
    codegen_timeout: float = 180.0
    execution_timeout: float = 60.0

    enable_audit_logging: bool = True

    # Secret store consulted before the environment; set on a subclass to inject one.
    secret_client: ClassVar[SecretClientProtocol | None] = None

    model_config = SettingsConfigDict(
        env_prefix="COREASON_ANALYST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            SecretsSettingsSource(settings_cls),
            file_secret_settings,
        )

    def require_credential(self) -> str:
        """Return the Model Gateway credential.

        Raises:
            ConfigurationError: If no credential is configured.
        """
        if not self.gateway_api_key:
            raise ConfigurationError(
                "No Model Gateway credential configured. Set OPENAI_API_KEY or COREASON_ANALYST_GATEWAY_API_KEY."
            )
        return self.gateway_api_key
