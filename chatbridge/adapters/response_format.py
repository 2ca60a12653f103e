"""
Response format negotiation.

Translates the caller's desired output shape (ChatRequest.format plus the
no_response_format flag) into a neutral FormatDirective, then into each
backend's native representation. Never raises: a value that does not
parse as JSON degrades to plain JSON mode.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from chatbridge.adapters.schema import JSON_FORMAT, ResponseFormat

SCHEMA_NAME = "response_schema"
JSON_MIME_TYPE = "application/json"


class FormatKind(str, Enum):
    NONE = "none"      # no constraint at all, plain text allowed
    JSON = "json"      # free-form JSON
    SCHEMA = "schema"  # JSON constrained by a schema


@dataclass(frozen=True)
class FormatDirective:
    kind: FormatKind
    schema: Optional[dict] = None
    name: str = SCHEMA_NAME


def _parse_format(value: ResponseFormat) -> Optional[Any]:
    """Return the decoded JSON value, or None for absent/sentinel/invalid input."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value

    text = value.strip()
    if not text or text in (JSON_FORMAT, f'"{JSON_FORMAT}"'):
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def negotiate(value: ResponseFormat, suppress: bool = False) -> FormatDirective:
    """Decide which kind of output constraint to request."""
    if suppress:
        return FormatDirective(FormatKind.NONE)

    parsed = _parse_format(value)
    if isinstance(parsed, dict):
        return FormatDirective(FormatKind.SCHEMA, schema=parsed)
    return FormatDirective(FormatKind.JSON)


# ─────────────────────────────────────────────────────────────────────
# BACKEND RENDERINGS
# ─────────────────────────────────────────────────────────────────────

def to_ollama_format(directive: FormatDirective) -> Optional[Any]:
    """Value for the Ollama `format` field; None means omit it."""
    if directive.kind is FormatKind.SCHEMA:
        return directive.schema
    if directive.kind is FormatKind.JSON:
        return JSON_FORMAT
    return None


def to_openai_response_format(directive: FormatDirective) -> Optional[dict]:
    """Value for the OpenAI `response_format` parameter; None means omit it."""
    if directive.kind is FormatKind.SCHEMA:
        return {
            "type": "json_schema",
            "json_schema": {
                "name": directive.name,
                "strict": True,
                "schema": directive.schema,
            },
        }
    if directive.kind is FormatKind.JSON:
        return {"type": "json_object"}
    return None


def to_gemini_generation_fields(directive: FormatDirective) -> dict:
    """responseMimeType/responseSchema entries for a Gemini generationConfig."""
    if directive.kind is FormatKind.SCHEMA:
        return {"responseMimeType": JSON_MIME_TYPE, "responseSchema": directive.schema}
    if directive.kind is FormatKind.JSON:
        return {"responseMimeType": JSON_MIME_TYPE}
    return {}
