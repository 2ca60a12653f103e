"""Tests for provider selection."""

import pytest

from chatbridge.adapters.factory import available_providers, create_provider
from chatbridge.adapters.gemini import GeminiAdapter
from chatbridge.adapters.ollama import OllamaAdapter
from chatbridge.adapters.openai_chat import OpenAIChatAdapter
from chatbridge.config import ProviderConfig
from chatbridge.errors import ConfigurationError
from tests.conftest import MOCK_API_KEY


class TestCreateProvider:

    def test_available(self):
        assert available_providers() == ["gemini", "ollama", "openai"]

    @pytest.mark.parametrize("name", ["", "ollama", " OLLAMA "])
    def test_ollama_is_default(self, name):
        provider = create_provider(name)
        assert isinstance(provider, OllamaAdapter)
        assert provider.name == "ollama"
        assert provider.host == "http://127.0.0.1:11434"

    def test_ollama_base_url_override(self):
        provider = create_provider("ollama", ProviderConfig(base_url="http://gpu-box:11434"))
        assert provider.host == "http://gpu-box:11434"

    def test_ollama_host_from_env(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "10.0.0.5:9999")
        assert create_provider("ollama").host == "http://10.0.0.5:9999"

    def test_openai(self):
        provider = create_provider("openai", ProviderConfig(api_key=MOCK_API_KEY))
        assert isinstance(provider, OpenAIChatAdapter)

    def test_gemini(self):
        provider = create_provider("Gemini", ProviderConfig(api_key=MOCK_API_KEY, auth_type="auth_token"))
        assert isinstance(provider, GeminiAdapter)

    def test_gemini_config_errors_surface(self):
        with pytest.raises(ConfigurationError, match="missing api key"):
            create_provider("gemini", ProviderConfig())

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="unsupported provider: 'anthropic'"):
            create_provider("anthropic")
