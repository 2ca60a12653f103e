"""
Shared error taxonomy for all chat backends.

Callers branch on the exception class without knowing which backend
raised it. Every adapter translates its own failure shapes into one of
these; the original cause is always chained (``raise ... from exc``).

Two conditions are deliberately NOT part of this hierarchy:

- Exceptions raised by the caller's delta callback propagate unchanged,
  so ``except ChatBridgeError`` never swallows a caller abort.
- Cancellation (``asyncio.CancelledError``) and the call deadline
  (builtin ``TimeoutError``) propagate as-is.
"""

from typing import Optional


class ChatBridgeError(Exception):
    """Base class for every error raised by a chat backend."""
    pass


class ConfigurationError(ChatBridgeError):
    """Invalid request or provider setup. Raised before any network I/O."""
    pass


class TransportError(ChatBridgeError):
    """Connection, DNS, socket or read failure while talking to a backend."""
    pass


class ProtocolError(ChatBridgeError):
    """Backend answered, but with a shape we cannot use."""
    pass


class UpstreamError(ChatBridgeError):
    """
    The remote service reported a failure.

    Attributes:
        status_code: HTTP status of the response, when known
        code: Numeric code from the error envelope (Gemini-style), when present
        status: Status token such as ``RESOURCE_EXHAUSTED``, when present
        message: Human-readable message from the service
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
        status: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.status = status
        super().__init__(detail or message)


class CallbackAbort(Exception):
    """
    Convenience exception for delta callbacks that want to stop a stream.

    Not a ChatBridgeError: whatever a callback raises is re-raised to the
    caller as the very same object.
    """
    pass
