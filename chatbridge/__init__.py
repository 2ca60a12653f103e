"""chatbridge - one streaming chat contract over Ollama, OpenAI-compatible and Gemini backends."""

from chatbridge.adapters import (
    JSON_FORMAT,
    ChatProvider,
    ChatRequest,
    ChatRequestBuilder,
    Delta,
    StreamMode,
    create_provider,
)
from chatbridge.config import ProviderConfig, load_provider_config
from chatbridge.errors import (
    CallbackAbort,
    ChatBridgeError,
    ConfigurationError,
    ProtocolError,
    TransportError,
    UpstreamError,
)

__version__ = "0.1.0"

__all__ = [
    "CallbackAbort",
    "ChatBridgeError",
    "ChatProvider",
    "ChatRequest",
    "ChatRequestBuilder",
    "ConfigurationError",
    "Delta",
    "JSON_FORMAT",
    "ProtocolError",
    "ProviderConfig",
    "StreamMode",
    "TransportError",
    "UpstreamError",
    "create_provider",
    "load_provider_config",
]
