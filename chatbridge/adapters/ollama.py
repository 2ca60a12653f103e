"""
OllamaAdapter - local Ollama daemon implementation of ChatProvider.

Uses the native /api/chat endpoint, which streams newline-delimited JSON
by default. Each received object is forwarded to the caller's callback
as-is: content and thinking text, unchanged.

Key differences from the REST adapters:
- No credentials: the daemon is reached on the local network
- Streams unless told otherwise: the `stream` key is only sent as false
- Reasoning: `thinking` text is forwarded on the secondary channel
"""

import json
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from chatbridge.adapters.base import require_model, resolve_callback, with_deadline
from chatbridge.adapters.response_format import negotiate, to_ollama_format
from chatbridge.adapters.schema import ChatRequest, Delta, DeltaCallback, StreamMode
from chatbridge.adapters.sse import aiter_lines
from chatbridge.config import DEFAULT_TIMEOUT_SECONDS, get_ollama_host
from chatbridge.errors import (
    ConfigurationError,
    ProtocolError,
    TransportError,
    UpstreamError,
)
from chatbridge.images import encode_base64

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


class OllamaMessage(BaseModel):
    role: str = "assistant"
    content: str = ""
    thinking: str = ""


class OllamaChatResponse(BaseModel):
    """One unit of an /api/chat response (a whole response when not streaming)."""
    message: OllamaMessage = Field(default_factory=OllamaMessage)
    done: bool = False
    error: Optional[str] = None


def build_messages(request: ChatRequest) -> list[dict]:
    """Optional system message, then the user message with its images."""
    messages = []
    system = request.system_prompt.strip()
    if system:
        messages.append({"role": "system", "content": system})

    user: dict[str, Any] = {"role": "user", "content": request.prompt}
    if request.images:
        user["images"] = [encode_base64(image) for image in request.images]
    messages.append(user)
    return messages


def merge_options(request: ChatRequest) -> dict:
    """Derived sampling options; caller-supplied options win on conflicts."""
    merged: dict[str, Any] = {"enable_thinking": request.think}
    if request.temperature != 0:
        merged["temperature"] = request.temperature
    if request.top_p != 0:
        merged["top_p"] = request.top_p
    merged.update(request.options)
    return merged


def build_payload(request: ChatRequest) -> dict:
    payload: dict[str, Any] = {
        "model": request.model.strip(),
        "messages": build_messages(request),
        "think": request.think,
        "options": merge_options(request),
    }

    format_value = to_ollama_format(
        negotiate(request.format, suppress=request.no_response_format)
    )
    if format_value is not None:
        payload["format"] = format_value

    # Omitting the key lets the server stream; only an explicit opt-out is encoded.
    if request.stream is StreamMode.DISABLED:
        payload["stream"] = False

    return payload


def _parse_unit(raw: str) -> OllamaChatResponse:
    try:
        unit = OllamaChatResponse.model_validate_json(raw)
    except ValidationError as e:
        raise ProtocolError(f"ollama: decode response: {e}") from e
    if unit.error:
        raise UpstreamError(f"ollama: {unit.error}")
    return unit


def _error_message(body: bytes) -> str:
    try:
        data = json.loads(body)
        if isinstance(data, dict) and isinstance(data.get("error"), str):
            return data["error"]
    except (json.JSONDecodeError, UnicodeDecodeError):
        pass
    return body.decode("utf-8", errors="replace").strip()[:500]


class OllamaAdapter:
    """
    Ollama implementation of ChatProvider.

    Usage:
        adapter = OllamaAdapter.from_env()   # honours OLLAMA_HOST
        await adapter.chat(request)
    """

    name = "ollama"

    def __init__(
        self,
        host: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            host: Base URL of the daemon, e.g. http://127.0.0.1:11434
            timeout_seconds: Per-operation HTTP timeout
            transport: Custom httpx transport (tests, proxies)

        Raises:
            ConfigurationError: If host is empty
        """
        host = (host or "").strip().rstrip("/")
        if not host:
            raise ConfigurationError("ollama: client is not configured (empty host)")
        self._host = host
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_env(
        cls,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OllamaAdapter":
        return cls(get_ollama_host(), timeout_seconds=timeout_seconds, transport=transport)

    @property
    def host(self) -> str:
        return self._host

    async def chat(self, request: ChatRequest) -> None:
        require_model(request, "ollama")
        payload = build_payload(request)
        on_delta = resolve_callback(request.on_delta)

        logger.debug(
            f"ollama: POST {self._host}{CHAT_PATH} model={payload['model']} stream={request.stream.value}"
        )
        await with_deadline(self._send(payload, on_delta), request.timeout_seconds)

    async def _send(self, payload: dict, on_delta: DeltaCallback) -> None:
        received = 0
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream(
                    "POST",
                    f"{self._host}{CHAT_PATH}",
                    json=payload,
                ) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        msg = _error_message(body)
                        logger.warning(f"ollama: upstream error {response.status_code}: {msg}")
                        raise UpstreamError(
                            f"ollama: http {response.status_code}: {msg}",
                            status_code=response.status_code,
                        )

                    # NDJSON: one object per line; a non-streaming reply is a single line.
                    async for line in aiter_lines(response.aiter_bytes()):
                        if not line.strip():
                            continue
                        unit = _parse_unit(line)
                        received += 1
                        on_delta(Delta(content=unit.message.content, thinking=unit.message.thinking))
        except httpx.TransportError as e:
            raise TransportError(f"ollama: chat request failed: {e}") from e

        if received == 0:
            raise ProtocolError("ollama: empty response")
