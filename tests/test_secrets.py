from unittest.mock import MagicMock, patch

from coreason_analyst.utils.secrets import SecretClientProtocol, SecretResolver


def test_resolver_prefers_client() -> None:
    client = MagicMock()
    client.get_secret.return_value = "from_store"
    with patch.dict("os.environ", {"OPENAI_API_KEY": "from_env"}):
        assert SecretResolver(client).get_secret("OPENAI_API_KEY") == "from_store"


def test_resolver_falls_back_when_client_fails() -> None:
    client = MagicMock()
    client.get_secret.side_effect = RuntimeError("store down")
    with patch.dict("os.environ", {"OPENAI_API_KEY": "from_env"}):
        assert SecretResolver(client).get_secret("OPENAI_API_KEY") == "from_env"


def test_resolver_falls_back_when_client_empty() -> None:
    client = MagicMock()
    client.get_secret.return_value = None
    with patch.dict("os.environ", {"OPENAI_API_KEY": "from_env"}):
        assert SecretResolver(client).get_secret("OPENAI_API_KEY") == "from_env"


def test_resolver_uses_prefixed_env() -> None:
    with patch.dict("os.environ", {"COREASON_ANALYST_OPENAI_API_KEY": "prefixed"}):
        assert SecretResolver().get_secret("OPENAI_API_KEY") == "prefixed"


def test_resolver_missing_returns_none() -> None:
    assert SecretResolver().get_secret("OPENAI_API_KEY") is None


def test_protocol_is_runtime_checkable() -> None:
    class Store:
        def get_secret(self, key: str) -> str | None:
            return None

    assert isinstance(Store(), SecretClientProtocol)
    assert not isinstance(object(), SecretClientProtocol)
