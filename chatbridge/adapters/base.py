"""
ChatProvider Protocol - defines the contract for chat inference backends.

This is the WHAT (interface), not the HOW (implementation).
See ollama.py, openai_chat.py and gemini.py for concrete implementations.
"""

import asyncio
from typing import Awaitable, Optional, Protocol

from chatbridge.adapters.schema import ChatRequest, Delta, DeltaCallback
from chatbridge.errors import ConfigurationError


class ChatProvider(Protocol):
    """
    Contract for chat inference backends.

    Implementations hold only immutable configuration, so one instance can
    serve concurrent calls on independent requests.
    """

    name: str

    async def chat(self, request: ChatRequest) -> None:
        """
        Run one chat request, delivering output through request.on_delta.

        Fragments are delivered in the order the backend produced them and
        the callback is called synchronously, so the next read from the wire
        waits until the callback returns. On success every fragment has been
        delivered before return; on failure some may already have been.

        Raises:
            ConfigurationError: invalid request, before any network I/O
            TransportError / ProtocolError / UpstreamError: backend failures
            Whatever request.on_delta raises, unchanged
            asyncio.CancelledError / TimeoutError: cancellation or deadline
        """
        ...


def require_model(request: ChatRequest, label: str) -> str:
    """Return the trimmed model name or fail before any I/O."""
    model = request.model.strip()
    if not model:
        raise ConfigurationError(f"{label}: model is required")
    return model


def _ignore(delta: Delta) -> None:
    return None


def resolve_callback(callback: Optional[DeltaCallback]) -> DeltaCallback:
    return callback if callback is not None else _ignore


async def with_deadline(call: Awaitable[None], timeout_seconds: Optional[float]) -> None:
    """Await a call under the request deadline; TimeoutError when it expires."""
    if timeout_seconds is None:
        await call
        return
    async with asyncio.timeout(timeout_seconds):
        await call
