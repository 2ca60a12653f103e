"""
OpenAIChatAdapter - OpenAI-compatible Chat Completions via the openai SDK.

Works against api.openai.com and any gateway exposing /v1/chat/completions.
Images are sent as base64 data URLs; temperature and top_p are always
forwarded (zero is a meaningful value for this API).
"""

import logging
import os
from typing import Any, Optional

import httpx
import openai
from openai import AsyncOpenAI

from chatbridge.adapters.base import require_model, resolve_callback, with_deadline
from chatbridge.adapters.response_format import negotiate, to_openai_response_format
from chatbridge.adapters.schema import ChatRequest, Delta, DeltaCallback
from chatbridge.config import BROWSER_USER_AGENT, DEFAULT_TIMEOUT_SECONDS, ProviderConfig
from chatbridge.errors import (
    ChatBridgeError,
    ConfigurationError,
    ProtocolError,
    TransportError,
    UpstreamError,
)
from chatbridge.images import encode_image_to_data_url

logger = logging.getLogger(__name__)

# Local gateways often accept any key; the SDK refuses to start without one.
PLACEHOLDER_API_KEY = "not-needed"


def normalize_base_url(base: str) -> Optional[str]:
    """The SDK expects a base ending in /v1; None keeps the SDK default."""
    b = (base or "").strip().rstrip("/")
    if not b:
        return None
    if not b.endswith("/v1"):
        b += "/v1"
    return b


def build_messages(request: ChatRequest) -> list[dict]:
    parts: list[dict[str, Any]] = [{"type": "text", "text": request.prompt.strip()}]
    for image in request.images:
        parts.append({"type": "image_url", "image_url": {"url": encode_image_to_data_url(image)}})

    messages: list[dict[str, Any]] = []
    system = request.system_prompt.strip()
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": parts})
    return messages


def build_params(request: ChatRequest) -> dict:
    params: dict[str, Any] = {
        "model": request.model.strip(),
        "messages": build_messages(request),
        "temperature": request.temperature,
        "top_p": request.top_p,
    }
    if not request.no_response_format:
        response_format = to_openai_response_format(negotiate(request.format))
        if response_format is not None:
            params["response_format"] = response_format
    return params


# ─────────────────────────────────────────────────────────────────────
# ERROR FORMATTING
# ─────────────────────────────────────────────────────────────────────

def _format_status(status_code: int) -> str:
    if not status_code:
        return ""
    reason = httpx.codes.get_reason_phrase(status_code)
    if reason:
        return f"status: {status_code} {reason}\n"
    return f"status: {status_code}\n"


def _format_headers(headers: Optional[httpx.Headers]) -> str:
    lines = ["headers:\n"]
    if not headers:
        lines.append("  <none>\n")
        return "".join(lines)

    for key, value in sorted(headers.multi_items(), key=lambda kv: kv[0]):
        lines.append(f"  {key}: {value}\n")
    return "".join(lines)


async def _format_body(response: Optional[httpx.Response]) -> str:
    if response is None:
        return "body:\n  <empty>\n"

    # httpx caches the body once read.
    try:
        try:
            raw = response.content
        except httpx.ResponseNotRead:
            raw = await response.aread()
    except httpx.HTTPError as e:
        return f"body:\n  <error reading body: {e}>\n"

    body = raw.decode("utf-8", errors="replace")
    if not body:
        return "body:\n  <empty>\n"
    if not body.endswith("\n"):
        body += "\n"
    return f"body:\n{body}"


async def build_api_error_detail(label: str, exc: openai.APIStatusError) -> str:
    """Multi-line report: label, status, sorted headers, body."""
    response = exc.response
    parts = [
        f"{label or 'openai: api error'}\n",
        _format_status(exc.status_code),
        _format_headers(response.headers if response is not None else None),
        await _format_body(response),
    ]
    return "".join(parts)


async def classify_openai_error(label: str, exc: Exception) -> ChatBridgeError:
    """Map an SDK or httpx failure into the shared taxonomy."""
    if isinstance(exc, openai.APIStatusError):
        detail = await build_api_error_detail(label, exc)
        return UpstreamError(
            exc.message,
            status_code=exc.status_code,
            status=str(exc.code) if exc.code else None,
            detail=f"{detail}{exc}",
        )
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return TransportError(f"{label}: {exc}")
    return ProtocolError(f"{label}: {exc}")


# ─────────────────────────────────────────────────────────────────────
# ADAPTER
# ─────────────────────────────────────────────────────────────────────

class OpenAIChatAdapter:
    """
    OpenAI-compatible implementation of ChatProvider.

    The SDK's own retry loop is disabled; failures go straight to the caller.

    Usage:
        adapter = OpenAIChatAdapter(ProviderConfig(api_key="sk-...", base_url="https://gw.example"))
        await adapter.chat(request)
    """

    name = "openai"

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: api_key (falls back to OPENAI_API_KEY) and optional base_url
            transport: Custom httpx transport (tests, proxies)

        Raises:
            ConfigurationError: If no API key is available for the default endpoint
        """
        api_key = config.api_key.strip() or os.environ.get("OPENAI_API_KEY", "").strip()
        self._base_url = normalize_base_url(config.base_url)
        if not api_key and self._base_url is None:
            raise ConfigurationError(
                "openai: missing api key. "
                "Provide api_key or set OPENAI_API_KEY environment variable."
            )

        headers = {"User-Agent": BROWSER_USER_AGENT}
        if api_key:
            # Some gateways read X-Api-Key instead of Authorization.
            headers["X-Api-Key"] = api_key

        self._api_key = api_key or PLACEHOLDER_API_KEY
        self._headers = headers
        self._timeout = config.timeout_seconds or DEFAULT_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    def _client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            default_headers=self._headers,
            timeout=self._timeout,
            max_retries=0,
            http_client=httpx.AsyncClient(timeout=self._timeout, transport=self._transport),
        )

    async def chat(self, request: ChatRequest) -> None:
        require_model(request, "openai")
        params = build_params(request)
        on_delta = resolve_callback(request.on_delta)
        stream = request.stream.resolve(False)

        logger.debug(f"openai: chat.completions model={params['model']} stream={stream}")
        if stream:
            call = self._stream(params, on_delta)
        else:
            call = self._complete(params, on_delta)
        await with_deadline(call, request.timeout_seconds)

    async def _stream(self, params: dict, on_delta: DeltaCallback) -> None:
        label = "openai: streaming chat completion failed"
        async with self._client() as client:
            try:
                stream = await client.chat.completions.create(**params, stream=True)
            except (openai.OpenAIError, httpx.TransportError) as e:
                raise await classify_openai_error(label, e) from e

            async with stream:
                try:
                    async for chunk in stream:
                        if not chunk.choices:
                            continue
                        content = (chunk.choices[0].delta.content or "").strip()
                        if not content:
                            continue
                        on_delta(Delta(content=content))
                except (openai.OpenAIError, httpx.TransportError) as e:
                    raise await classify_openai_error(label, e) from e

    async def _complete(self, params: dict, on_delta: DeltaCallback) -> None:
        label = "openai: chat completion failed"
        async with self._client() as client:
            try:
                resp = await client.chat.completions.create(**params)
            except (openai.OpenAIError, httpx.TransportError) as e:
                raise await classify_openai_error(label, e) from e

        if not resp.choices:
            raise ProtocolError("openai: empty choices")
        on_delta(Delta(content=(resp.choices[0].message.content or "").strip()))
