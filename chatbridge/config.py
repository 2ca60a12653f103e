"""
Configuration constants and the provider configuration snapshot.

Values come from environment variables (optionally via a .env file).
Providers receive an immutable ProviderConfig at construction and never
read the environment during a call.
"""

import os
from typing import Optional

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_PROVIDER: str = "ollama"
DEFAULT_TIMEOUT_SECONDS: float = 120.0  # 2 minutes
DEFAULT_AUTH_TYPE: str = "api_key"

DEFAULT_OLLAMA_HOST: str = "http://127.0.0.1:11434"
OLLAMA_DEFAULT_PORT: int = 11434

DEFAULT_GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

# Some OpenAI-compatible gateways reject non-browser clients.
BROWSER_USER_AGENT: str = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

ENV_PREFIX: str = "CHATBRIDGE_"


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class ProviderConfig(BaseModel):
    """Connection settings shared by all providers."""
    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    base_url: str = ""
    auth_type: str = DEFAULT_AUTH_TYPE  # "api_key" or "auth_token"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_timeout_seconds() -> float:
    """
    Get HTTP timeout from environment or default.

    Set CHATBRIDGE_TIMEOUT in .env (default: 120).
    """
    try:
        return float(os.environ.get(f"{ENV_PREFIX}TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def get_provider_name() -> str:
    """Get the backend name from CHATBRIDGE_PROVIDER (default: ollama)."""
    return os.environ.get(f"{ENV_PREFIX}PROVIDER", DEFAULT_PROVIDER).strip().lower()


def get_ollama_host() -> str:
    """
    Resolve the Ollama base URL from OLLAMA_HOST.

    Accepts bare hosts ("localhost", "10.0.0.5:11434") and full URLs.
    Bare hosts default to http on port 11434; explicit http/https
    URLs without a port use 80/443.
    """
    raw = os.environ.get("OLLAMA_HOST", "").strip()
    if not raw:
        return DEFAULT_OLLAMA_HOST

    if "://" not in raw:
        hostport, _, path = raw.partition("/")
        host, sep, port = hostport.rpartition(":")
        if not sep or not port.isdigit():
            host, port = hostport, str(OLLAMA_DEFAULT_PORT)
        path = f"/{path}".rstrip("/")
        return f"http://{host}:{port}{path}"

    url = httpx.URL(raw)
    host = url.host
    if ":" in host:
        host = f"[{host}]"  # IPv6 literal
    port = url.port or (443 if url.scheme == "https" else 80)
    path = url.path.rstrip("/")
    return f"{url.scheme}://{host}:{port}{path}"


def load_provider_config(env_file: Optional[str] = None) -> ProviderConfig:
    """
    Build a ProviderConfig snapshot from the environment.

    Reads CHATBRIDGE_API_KEY, CHATBRIDGE_BASE_URL, CHATBRIDGE_AUTH_TYPE and
    CHATBRIDGE_TIMEOUT after loading the .env file (existing variables win).
    """
    load_dotenv(env_file)
    return ProviderConfig(
        api_key=os.environ.get(f"{ENV_PREFIX}API_KEY", "").strip(),
        base_url=os.environ.get(f"{ENV_PREFIX}BASE_URL", "").strip(),
        auth_type=os.environ.get(f"{ENV_PREFIX}AUTH_TYPE", DEFAULT_AUTH_TYPE).strip() or DEFAULT_AUTH_TYPE,
        timeout_seconds=get_timeout_seconds(),
    )
