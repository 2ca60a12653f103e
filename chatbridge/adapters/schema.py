"""
ChatRequest - standardized, backend-agnostic description of one chat call.

ChatRequestBuilder assembles one with validated values; Delta is the
fragment handed to the caller's callback.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from chatbridge.errors import ConfigurationError

# Free-form JSON output, no schema attached.
JSON_FORMAT = "json"

# None (no constraint), the JSON_FORMAT sentinel, a schema dict,
# or raw JSON text (e.g. a schema string read from a config file).
ResponseFormat = Union[str, Dict[str, Any], None]


class StreamMode(str, Enum):
    """
    Caller's streaming preference.

    DEFAULT lets each backend apply its native behaviour: the local
    daemon streams, the REST backends answer in one shot.
    """
    DEFAULT = "default"
    ENABLED = "enabled"
    DISABLED = "disabled"

    def resolve(self, backend_default: bool) -> bool:
        if self is StreamMode.ENABLED:
            return True
        if self is StreamMode.DISABLED:
            return False
        return backend_default


@dataclass(frozen=True)
class Delta:
    """One incremental fragment of model output."""
    content: str = ""
    thinking: str = ""


DeltaCallback = Callable[[Delta], None]


class ChatRequest(BaseModel):
    """
    Standardized, backend-agnostic description of one chat call.

    Built once (directly or through ChatRequestBuilder) and consumed by
    exactly one provider invocation. Zero temperature/top_p mean "let the
    backend decide", except for the OpenAI backend which forwards them as-is.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    model: str
    prompt: str = ""
    system_prompt: str = ""
    images: Tuple[bytes, ...] = ()
    temperature: float = 0.0
    top_p: float = 0.0
    stream: StreamMode = StreamMode.DEFAULT
    think: bool = False
    format: ResponseFormat = None
    no_response_format: bool = False
    options: Dict[str, Any] = Field(default_factory=dict)
    on_delta: Optional[DeltaCallback] = None
    timeout_seconds: Optional[float] = None

    @classmethod
    def builder(cls, model: str, prompt: str = "") -> "ChatRequestBuilder":
        return ChatRequestBuilder(model, prompt)


class ChatRequestBuilder:
    """
    Named, validated setters for ChatRequest.

    Usage:
        request = (
            ChatRequest.builder("llava:13b", "Describe the image")
            .images(png_bytes)
            .temperature(0.2)
            .stream(StreamMode.ENABLED)
            .on_delta(print_delta)
            .build()
        )
    """

    def __init__(self, model: str, prompt: str = ""):
        self._fields: Dict[str, Any] = {"model": model, "prompt": prompt}
        self._options: Dict[str, Any] = {}

    def temperature(self, value: float) -> "ChatRequestBuilder":
        if value < 0:
            raise ConfigurationError(f"temperature must be >= 0, got {value}")
        self._fields["temperature"] = float(value)
        return self

    def top_p(self, value: float) -> "ChatRequestBuilder":
        if not 0 <= value <= 1:
            raise ConfigurationError(f"top_p must be within [0, 1], got {value}")
        self._fields["top_p"] = float(value)
        return self

    def stream(self, mode: Union[StreamMode, bool]) -> "ChatRequestBuilder":
        if isinstance(mode, bool):
            mode = StreamMode.ENABLED if mode else StreamMode.DISABLED
        self._fields["stream"] = StreamMode(mode)
        return self

    def think(self, enabled: bool = True) -> "ChatRequestBuilder":
        self._fields["think"] = bool(enabled)
        return self

    def system_prompt(self, text: str) -> "ChatRequestBuilder":
        self._fields["system_prompt"] = text
        return self

    def images(self, *blobs: bytes) -> "ChatRequestBuilder":
        for blob in blobs:
            if not isinstance(blob, (bytes, bytearray)):
                raise ConfigurationError(f"images must be bytes, got {type(blob).__name__}")
        self._fields["images"] = tuple(bytes(b) for b in blobs)
        return self

    def format(self, value: ResponseFormat) -> "ChatRequestBuilder":
        self._fields["format"] = value
        return self

    def schema_string(self, text: str) -> "ChatRequestBuilder":
        """Set the output format from raw JSON text ('"json"' or an object)."""
        self._fields["format"] = text
        return self

    def no_response_format(self, suppress: bool = True) -> "ChatRequestBuilder":
        self._fields["no_response_format"] = bool(suppress)
        return self

    def options(self, extra: Dict[str, Any]) -> "ChatRequestBuilder":
        """Merge backend-specific options; later keys override earlier ones."""
        self._options.update(extra or {})
        return self

    def extra_option(self, key: str, value: Any) -> "ChatRequestBuilder":
        self._options[key] = value
        return self

    def on_delta(self, callback: Optional[DeltaCallback]) -> "ChatRequestBuilder":
        if callback is not None and not callable(callback):
            raise ConfigurationError("on_delta must be callable")
        self._fields["on_delta"] = callback
        return self

    def timeout(self, seconds: Optional[float]) -> "ChatRequestBuilder":
        if seconds is not None and seconds <= 0:
            raise ConfigurationError(f"timeout must be positive, got {seconds}")
        self._fields["timeout_seconds"] = seconds
        return self

    def build(self) -> ChatRequest:
        return ChatRequest(**self._fields, options=dict(self._options))
