"""
Adapters for chat inference backends.

Provider-agnostic architecture: Protocol defines WHAT, implementations define HOW.
"""

from .base import ChatProvider
from .factory import available_providers, create_provider
from .gemini import GeminiAdapter
from .ollama import OllamaAdapter
from .openai_chat import OpenAIChatAdapter
from .schema import JSON_FORMAT, ChatRequest, ChatRequestBuilder, Delta, StreamMode

__all__ = [
    "ChatProvider",
    "ChatRequest",
    "ChatRequestBuilder",
    "Delta",
    "GeminiAdapter",
    "JSON_FORMAT",
    "OllamaAdapter",
    "OpenAIChatAdapter",
    "StreamMode",
    "available_providers",
    "create_provider",
]
