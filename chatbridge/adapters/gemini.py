"""
GeminiAdapter - Gemini REST implementation of ChatProvider.

Talks to the Generative Language REST API directly over httpx; no SDK.
Request bodies, endpoints and auth placement are built by hand, and the
streaming path reads `text/event-stream` through the SSE frame parser.

Endpoints:
    POST {base}/models/{model}:generateContent
    POST {base}/models/{model}:streamGenerateContent?alt=sse

Auth (exactly one per request):
    api_key     ?key=<api key> query parameter (default)
    auth_token  Authorization: Bearer <api key>
"""

import json
import logging
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote, quote_plus

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatbridge.adapters.base import require_model, resolve_callback, with_deadline
from chatbridge.adapters.response_format import negotiate, to_gemini_generation_fields
from chatbridge.adapters.schema import ChatRequest, Delta, DeltaCallback
from chatbridge.adapters.sse import aiter_events, aiter_lines, is_terminal_payload
from chatbridge.config import BROWSER_USER_AGENT, DEFAULT_GEMINI_BASE_URL, ProviderConfig
from chatbridge.errors import (
    ConfigurationError,
    ProtocolError,
    TransportError,
    UpstreamError,
)
from chatbridge.images import encode_base64, sniff_image_mime

logger = logging.getLogger(__name__)

STREAMING_PATH = ":streamGenerateContent"
NON_STREAMING_PATH = ":generateContent"
SSE_QUERY = "?alt=sse"
API_VERSION_SUFFIXES = ("/v1", "/v1beta", "/v1beta1")
DEFAULT_API_VERSION = "/v1beta"
HTTP_CLIENT_ERROR = 400
ERROR_SNIPPET_CHARS = 500

# Path-segment escaping: RFC 3986 sub-delims stay literal, '/' and spaces do not.
_PATH_SAFE = ":@!$&'()*+,;="


class AuthMode(str, Enum):
    API_KEY = "api_key"
    AUTH_TOKEN = "auth_token"


# ─────────────────────────────────────────────────────────────────────
# WIRE SHAPES
# ─────────────────────────────────────────────────────────────────────

class GeminiInlineData(BaseModel):
    mime_type: str
    data: str  # base64


class GeminiPart(BaseModel):
    """Either inline text or inline binary data."""
    text: Optional[str] = None
    inline_data: Optional[GeminiInlineData] = None


class GeminiContent(BaseModel):
    """A role-tagged list of parts. System instructions carry no role."""
    role: Optional[str] = None
    parts: list[GeminiPart]

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class GeminiGenerationConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    temperature: Optional[float] = None
    top_p: Optional[float] = Field(default=None, alias="topP")
    top_k: Optional[int] = Field(default=None, alias="topK")
    response_mime_type: Optional[str] = Field(default=None, alias="responseMimeType")
    response_schema: Optional[Any] = Field(default=None, alias="responseSchema")

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.temperature,
                self.top_p,
                self.top_k,
                self.response_mime_type,
                self.response_schema,
            )
        )

    def to_payload(self) -> dict:
        # Built by hand so None values nested inside the schema survive.
        payload: dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if value is not None:
                payload[field.alias or name] = value
        return payload


class GeminiResponsePart(BaseModel):
    text: str = ""


class GeminiCandidateContent(BaseModel):
    parts: list[GeminiResponsePart] = Field(default_factory=list)


class GeminiCandidate(BaseModel):
    content: GeminiCandidateContent = Field(default_factory=GeminiCandidateContent)


class GeminiErrorPayload(BaseModel):
    code: int = 0
    status: str = ""
    message: str = ""

    def describe(self) -> str:
        if self.status:
            return f"gemini: {self.status} ({self.code}): {self.message}"
        if self.code:
            return f"gemini: code {self.code}: {self.message}"
        return f"gemini: {self.message}"

    def to_error(self, status_code: Optional[int] = None) -> UpstreamError:
        return UpstreamError(
            self.describe(),
            status_code=status_code,
            code=self.code or None,
            status=self.status or None,
        )


class GeminiResponse(BaseModel):
    candidates: list[GeminiCandidate] = Field(default_factory=list)
    error: Optional[GeminiErrorPayload] = None


class GeminiErrorEnvelope(BaseModel):
    error: GeminiErrorPayload


# ─────────────────────────────────────────────────────────────────────
# REQUEST CONSTRUCTION
# ─────────────────────────────────────────────────────────────────────

def normalize_base_url(base: str) -> str:
    """Default to v1beta; keep an explicit API version segment."""
    b = (base or "").strip()
    if not b:
        return DEFAULT_GEMINI_BASE_URL

    b = b.rstrip("/")
    if b.endswith(API_VERSION_SUFFIXES):
        return b
    return b + DEFAULT_API_VERSION


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def extract_top_k(options: dict) -> Optional[int]:
    """topK from the extra options, accepting either spelling."""
    for key in ("topK", "top_k"):
        if key in options:
            top_k = _to_int(options[key])
            if top_k is not None:
                return top_k
    return None


def build_contents(request: ChatRequest) -> tuple[list[GeminiContent], Optional[GeminiContent]]:
    """Return (contents, system_instruction) for a request."""
    parts: list[GeminiPart] = []

    prompt = request.prompt.strip()
    if prompt:
        parts.append(GeminiPart(text=prompt))

    for image in request.images:
        if not image:
            continue
        parts.append(
            GeminiPart(
                inline_data=GeminiInlineData(
                    mime_type=sniff_image_mime(image),
                    data=encode_base64(image),
                )
            )
        )

    if not parts:
        raise ConfigurationError("gemini: prompt or images are required")

    contents = [GeminiContent(role="user", parts=parts)]

    system_instruction = None
    system = request.system_prompt.strip()
    if system:
        system_instruction = GeminiContent(parts=[GeminiPart(text=system)])

    return contents, system_instruction


def build_generation_config(request: ChatRequest) -> Optional[GeminiGenerationConfig]:
    """Sampling plus format fields; None when nothing is set."""
    fields: dict[str, Any] = {}
    if request.temperature != 0:
        fields["temperature"] = request.temperature
    if request.top_p != 0:
        fields["top_p"] = request.top_p

    top_k = extract_top_k(request.options)
    if top_k is not None:
        fields["top_k"] = top_k

    directive = negotiate(request.format, suppress=request.no_response_format)
    for alias, value in to_gemini_generation_fields(directive).items():
        fields[alias] = value

    config = GeminiGenerationConfig(**fields)
    if config.is_empty():
        return None
    return config


def build_request_body(request: ChatRequest) -> bytes:
    contents, system_instruction = build_contents(request)

    body: dict[str, Any] = {"contents": [c.to_payload() for c in contents]}
    if system_instruction is not None:
        body["system_instruction"] = system_instruction.to_payload()

    generation_config = build_generation_config(request)
    if generation_config is not None:
        body["generationConfig"] = generation_config.to_payload()

    try:
        return json.dumps(body, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"gemini: encode request: {e}") from e


# ─────────────────────────────────────────────────────────────────────
# RESPONSE HANDLING
# ─────────────────────────────────────────────────────────────────────

def emit_candidates(candidates: list[GeminiCandidate], on_delta: DeltaCallback) -> None:
    """Deliver every non-empty text part, candidate order then part order."""
    for candidate in candidates:
        for part in candidate.content.parts:
            if not part.text:
                continue
            on_delta(Delta(content=part.text))


def decode_response(raw: str | bytes, stage: str) -> GeminiResponse:
    try:
        return GeminiResponse.model_validate_json(raw)
    except ValidationError as e:
        raise ProtocolError(f"gemini: decode {stage}: {e}") from e


def dispatch_payload(payload: str, on_delta: DeltaCallback) -> None:
    """Handle one completed SSE event."""
    if is_terminal_payload(payload):
        return

    chunk = decode_response(payload.strip(), "stream chunk")
    if chunk.error is not None:
        raise chunk.error.to_error()
    emit_candidates(chunk.candidates, on_delta)


def classify_error_response(status_code: int, body: bytes) -> UpstreamError:
    """Structured error envelope when present, raw status and body otherwise."""
    try:
        envelope = GeminiErrorEnvelope.model_validate_json(body)
    except ValidationError:
        envelope = None

    if envelope is not None:
        return envelope.error.to_error(status_code)

    snippet = body.decode("utf-8", errors="replace").strip()[:ERROR_SNIPPET_CHARS]
    return UpstreamError(f"gemini: http {status_code}: {snippet}", status_code=status_code)


# ─────────────────────────────────────────────────────────────────────
# ADAPTER
# ─────────────────────────────────────────────────────────────────────

class GeminiAdapter:
    """
    Gemini REST implementation of ChatProvider.

    Usage:
        adapter = GeminiAdapter(ProviderConfig(api_key="..."))
        await adapter.chat(request)
    """

    name = "gemini"

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: api_key is required; base_url and auth_type are optional
            transport: Custom httpx transport (tests, proxies)

        Raises:
            ConfigurationError: missing API key or unknown auth type
        """
        api_key = config.api_key.strip()
        if not api_key:
            raise ConfigurationError("gemini: missing api key")

        auth_type = (config.auth_type or "").strip().lower() or AuthMode.API_KEY.value
        try:
            self._auth_mode = AuthMode(auth_type)
        except ValueError:
            raise ConfigurationError(f"gemini: unsupported auth type {config.auth_type!r}") from None

        self._api_key = api_key
        self._base_url = normalize_base_url(config.base_url)
        self._timeout = config.timeout_seconds
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def auth_mode(self) -> AuthMode:
        return self._auth_mode

    def build_endpoint(self, model: str, stream: bool) -> str:
        model = model.strip()
        if not model:
            raise ConfigurationError("gemini: model is required")

        suffix, query = NON_STREAMING_PATH, ""
        if stream:
            suffix, query = STREAMING_PATH, SSE_QUERY

        return f"{self._base_url}/models/{quote(model, safe=_PATH_SAFE)}{suffix}{query}"

    def _attach_api_key(self, endpoint: str) -> str:
        if self._auth_mode is AuthMode.AUTH_TOKEN:
            return endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}key={quote_plus(self._api_key)}"

    def _headers(self, stream: bool) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": BROWSER_USER_AGENT,
            "Accept": "text/event-stream" if stream else "application/json",
        }
        if self._auth_mode is AuthMode.AUTH_TOKEN:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def build_http_request(self, request: ChatRequest) -> httpx.Request:
        """Assemble the outgoing request without sending it."""
        model = require_model(request, "gemini")
        stream = request.stream.resolve(False)
        endpoint = self.build_endpoint(model, stream)
        return httpx.Request(
            "POST",
            self._attach_api_key(endpoint),
            headers=self._headers(stream),
            content=build_request_body(request),
        )

    async def chat(self, request: ChatRequest) -> None:
        http_request = self.build_http_request(request)
        stream = request.stream.resolve(False)
        on_delta = resolve_callback(request.on_delta)

        logger.debug(
            f"gemini: POST models/{request.model.strip()} stream={stream} auth={self._auth_mode.value}"
        )
        if stream:
            call = self._stream(http_request, on_delta)
        else:
            call = self._non_stream(http_request, on_delta)
        await with_deadline(call, request.timeout_seconds)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _stream(self, http_request: httpx.Request, on_delta: DeltaCallback) -> None:
        try:
            async with self._client() as client:
                response = await client.send(http_request, stream=True)
                try:
                    await self._raise_for_status(response)
                    await self._read_sse(response, on_delta)
                finally:
                    await response.aclose()
        except httpx.TransportError as e:
            raise TransportError(f"gemini: stream request failed: {e}") from e

    async def _read_sse(self, response: httpx.Response, on_delta: DeltaCallback) -> None:
        async for payload in aiter_events(aiter_lines(response.aiter_bytes())):
            dispatch_payload(payload, on_delta)

    async def _non_stream(self, http_request: httpx.Request, on_delta: DeltaCallback) -> None:
        try:
            async with self._client() as client:
                response = await client.send(http_request)
        except httpx.TransportError as e:
            raise TransportError(f"gemini: request failed: {e}") from e

        await self._raise_for_status(response)

        out = decode_response(response.content, "response")
        if out.error is not None:
            raise out.error.to_error(response.status_code)
        if not out.candidates:
            raise ProtocolError("gemini: empty candidates")
        emit_candidates(out.candidates, on_delta)

    async def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < HTTP_CLIENT_ERROR:
            return

        body = await response.aread()
        error = classify_error_response(response.status_code, body)
        logger.warning(f"gemini: upstream error {response.status_code}: {error.message}")
        raise error
