"""
Provider factory - maps a backend name to a configured ChatProvider.
"""

import logging
from typing import Callable, Optional

import httpx

from chatbridge.adapters.base import ChatProvider
from chatbridge.adapters.gemini import GeminiAdapter
from chatbridge.adapters.ollama import OllamaAdapter
from chatbridge.adapters.openai_chat import OpenAIChatAdapter
from chatbridge.config import ProviderConfig, get_ollama_host
from chatbridge.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _make_ollama(config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport]) -> ChatProvider:
    host = config.base_url.strip() or get_ollama_host()
    return OllamaAdapter(host, timeout_seconds=config.timeout_seconds, transport=transport)


def _make_openai(config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport]) -> ChatProvider:
    return OpenAIChatAdapter(config, transport=transport)


def _make_gemini(config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport]) -> ChatProvider:
    return GeminiAdapter(config, transport=transport)


# Explicit name -> constructor mapping; "" selects the local daemon.
PROVIDER_REGISTRY: dict[str, Callable[[ProviderConfig, Optional[httpx.AsyncBaseTransport]], ChatProvider]] = {
    "": _make_ollama,
    "ollama": _make_ollama,
    "openai": _make_openai,
    "gemini": _make_gemini,
}


def available_providers() -> list[str]:
    return sorted(name for name in PROVIDER_REGISTRY if name)


def create_provider(
    name: str,
    config: Optional[ProviderConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatProvider:
    """
    Build the provider registered under `name` (case-insensitive).

    Raises:
        ConfigurationError: Unknown name or invalid provider configuration
    """
    key = (name or "").strip().lower()
    factory = PROVIDER_REGISTRY.get(key)
    if factory is None:
        raise ConfigurationError(
            f"unsupported provider: {name!r} (expected one of: {', '.join(available_providers())})"
        )

    provider = factory(config or ProviderConfig(), transport)
    logger.debug(f"Created {provider.name} provider")
    return provider
