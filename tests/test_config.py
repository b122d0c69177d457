from unittest.mock import MagicMock, patch

import pytest

from coreason_analyst.config import AnalystConfig, SecretsSettingsSource
from coreason_analyst.exceptions import ConfigurationError


def test_secrets_source_injects_openai_key() -> None:
    """OPENAI_API_KEY hydrates the gateway credential."""
    with patch.dict("os.environ", {"OPENAI_API_KEY": "secret_key"}):
        config = AnalystConfig(_env_file=None)
        assert config.gateway_api_key == "secret_key"


def test_secrets_source_ignores_missing() -> None:
    config = AnalystConfig(_env_file=None)
    assert config.gateway_api_key is None


def test_prefixed_env_overrides_secret_source() -> None:
    """Prefixed env settings take precedence over the secrets source."""
    env = {"OPENAI_API_KEY": "from_secret", "COREASON_ANALYST_GATEWAY_API_KEY": "from_env"}
    with patch.dict("os.environ", env):
        config = AnalystConfig(_env_file=None)
        assert config.gateway_api_key == "from_env"


def test_init_kwargs_win() -> None:
    with patch.dict("os.environ", {"OPENAI_API_KEY": "from_secret"}):
        config = AnalystConfig(gateway_api_key="explicit", _env_file=None)
        assert config.gateway_api_key == "explicit"


def test_defaults() -> None:
    config = AnalystConfig(_env_file=None)
    assert config.model == "gpt-4.1"
    assert config.planner_max_tokens == 1000
    assert config.extractor_max_tokens == 32768
    assert config.codegen_max_tokens == 1000
    assert config.runtime == "process"
    assert config.allowed_modules == {"pandas", "numpy"}
    assert config.enable_audit_logging is True


def test_env_overrides_runtime_and_timeouts() -> None:
    env = {
        "COREASON_ANALYST_RUNTIME": "inline",
        "COREASON_ANALYST_EXECUTION_TIMEOUT": "5",
        "COREASON_ANALYST_GATEWAY_URL": "http://localhost:8080/v1",
    }
    with patch.dict("os.environ", env):
        config = AnalystConfig(_env_file=None)
        assert config.runtime == "inline"
        assert config.execution_timeout == 5.0
        assert config.gateway_url == "http://localhost:8080/v1"


def test_invalid_runtime_rejected() -> None:
    with pytest.raises(ValueError):
        AnalystConfig(runtime="docker", _env_file=None)


def test_require_credential() -> None:
    assert AnalystConfig(gateway_api_key="k", _env_file=None).require_credential() == "k"

    with pytest.raises(ConfigurationError) as exc:
        AnalystConfig(_env_file=None).require_credential()
    assert "OPENAI_API_KEY" in str(exc.value)
    assert exc.value.user_message.startswith("Error: No Model Gateway credential")


def test_secrets_source_uses_resolver() -> None:
    with patch("coreason_analyst.config.SecretResolver") as mock_resolver:
        mock_resolver.return_value.get_secret = MagicMock(return_value="vaulted")
        source = SecretsSettingsSource(AnalystConfig)
        assert source() == {"gateway_api_key": "vaulted"}
        mock_resolver.return_value.get_secret.assert_called_once_with("OPENAI_API_KEY")


def test_secret_client_on_subclass_is_consulted() -> None:
    store = MagicMock()
    store.get_secret.return_value = "from_store"

    class StoreBackedConfig(AnalystConfig):
        secret_client = store

    with patch.dict("os.environ", {"OPENAI_API_KEY": "from_env"}):
        config = StoreBackedConfig(_env_file=None)

    assert config.gateway_api_key == "from_store"
    store.get_secret.assert_called_once_with("OPENAI_API_KEY")
    assert AnalystConfig.secret_client is None
