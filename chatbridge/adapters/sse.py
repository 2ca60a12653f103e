"""
Server-Sent-Events frame parser.

Pure state machine over logical lines; knows nothing about sockets or
JSON. Feed it one line at a time (with or without the trailing newline)
and it hands back the payload of each completed event. aiter_lines()
turns raw response bytes into those lines:

    async for payload in aiter_events(aiter_lines(response.aiter_bytes())):
        handle(payload)

Framing rules:
- ``data:`` lines append their trimmed remainder to the buffer; a second
  data line in the same event is joined with a newline.
- A blank line completes the event when the buffer holds something.
- Every other line (comments, ``event:``, ``id:``, ``retry:``) is ignored.
- ``finish()`` flushes an event that ended without its blank line.
"""

from typing import AsyncIterable, AsyncIterator, Optional

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class SSEFrameParser:
    """Two states: idle (empty buffer) and accumulating."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def feed_line(self, line: str) -> Optional[str]:
        """Consume one line; return a completed event payload or None."""
        line = line.rstrip("\r\n")

        if line.startswith(DATA_PREFIX):
            self._parts.append(line[len(DATA_PREFIX):].strip())
            return None

        if line == "" and self._parts:
            return self._take()

        return None

    def finish(self) -> Optional[str]:
        """Signal end-of-input; return the unterminated trailing event, if any."""
        if self._parts:
            return self._take()
        return None

    def _take(self) -> str:
        payload = "\n".join(self._parts)
        self._parts = []
        return payload


async def aiter_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """
    Split a byte stream into logical lines.

    Lines end only at LF (a CR before it is dropped), so U+2028, U+0085 and
    other Unicode separators inside JSON text stay on their line. Each
    complete line is decoded as UTF-8; an unterminated tail is yielded at
    end of input.
    """
    buffer = b""
    async for chunk in chunks:
        buffer += chunk
        *lines, buffer = buffer.split(b"\n")
        for line in lines:
            yield _decode_line(line)
    if buffer:
        yield _decode_line(buffer)


def _decode_line(line: bytes) -> str:
    if line.endswith(b"\r"):
        line = line[:-1]
    return line.decode("utf-8", errors="replace")


async def aiter_events(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Yield event payloads from logical lines, flushing a trailing event once."""
    parser = SSEFrameParser()
    async for line in lines:
        payload = parser.feed_line(line)
        if payload is not None:
            yield payload
    payload = parser.finish()
    if payload is not None:
        yield payload


def is_terminal_payload(payload: str) -> bool:
    """True for payloads that carry no data (blank or the [DONE] sentinel)."""
    trimmed = payload.strip()
    return trimmed == "" or trimmed == DONE_SENTINEL
