"""Shared test fixtures for chatbridge tests."""

import io
import json

import pytest
from PIL import Image

from chatbridge.adapters.schema import Delta
from chatbridge.config import ProviderConfig


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta"
MOCK_GEMINI_MODEL = "gemini-2.0-flash"
MOCK_API_KEY = "test-key-123"

MOCK_OPENAI_BASE = "https://gateway.example.com/v1"
MOCK_OPENAI_MODEL = "gpt-4o-mini"

MOCK_OLLAMA_HOST = "http://127.0.0.1:11434"
MOCK_OLLAMA_MODEL = "qwen2.5vl:7b"

MOCK_COMPLETION_RESPONSE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1699000000,
    "model": MOCK_OPENAI_MODEL,
    "choices": [
        {
            "index": 0,
            "message": {
                "role": "assistant",
                "content": "  The capital of France is Paris.\n"
            },
            "finish_reason": "stop"
        }
    ],
    "usage": {
        "prompt_tokens": 10,
        "completion_tokens": 8,
        "total_tokens": 18
    }
}

MOCK_STREAMING_CHUNKS = [
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"role":"assistant","content":""},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"content":"The"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"content":" capital"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"content":" of"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[],"usage":null}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"content":" France"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"content":"   "},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{"content":" is Paris."},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"gpt-4o-mini","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}',
    'data: [DONE]',
]


def gemini_chunk(*texts: str) -> str:
    """One Gemini response object with a single candidate holding `texts` as parts."""
    return json.dumps(
        {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}
    )


def sse_event(payload: str) -> str:
    return f"data: {payload}\n\n"


# ─────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────

class DeltaRecorder:
    """Delta callback that records every invocation."""

    def __init__(self, fail_on: int | None = None, error: Exception | None = None):
        self.deltas: list[Delta] = []
        self._fail_on = fail_on
        self._error = error or RuntimeError("callback failed")

    def __call__(self, delta: Delta) -> None:
        self.deltas.append(delta)
        if self._fail_on is not None and len(self.deltas) == self._fail_on:
            raise self._error

    @property
    def contents(self) -> list[str]:
        return [d.content for d in self.deltas]

    @property
    def thinking(self) -> list[str]:
        return [d.thinking for d in self.deltas]


def make_image_bytes(fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (2, 2), color=(255, 0, 0)).save(buf, format=fmt)
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def recorder():
    return DeltaRecorder()


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG")


@pytest.fixture
def gemini_config():
    return ProviderConfig(api_key=MOCK_API_KEY)


@pytest.fixture
def gemini_bearer_config():
    return ProviderConfig(api_key=MOCK_API_KEY, auth_type="auth_token")


@pytest.fixture
def openai_config():
    return ProviderConfig(api_key=MOCK_API_KEY, base_url="https://gateway.example.com")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for var in (
        "OLLAMA_HOST",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "CHATBRIDGE_PROVIDER",
        "CHATBRIDGE_API_KEY",
        "CHATBRIDGE_BASE_URL",
        "CHATBRIDGE_AUTH_TYPE",
        "CHATBRIDGE_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
