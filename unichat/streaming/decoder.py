"""
unichat - SSE Frame Decoder

Turns an arbitrarily chunked HTTP response body into the payloads of its
``data:`` lines. Chunk boundaries carry no meaning: bytes are decoded
incrementally (so a multi-byte character split across chunks survives) and
only complete lines are interpreted.

Usage:
    decoder = SSEFrameDecoder()
    async for chunk in response.aiter_bytes():
        for payload in decoder.feed(chunk):
            frame = parse_frame(payload)
    for payload in decoder.flush():
        ...
"""

import codecs
import json
from typing import Any, Dict, Iterator, Optional, Union

from ..observability.logging import StructuredLogger, get_logger


logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


class SSEFrameDecoder:
    """Incremental line-oriented SSE decoder."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self.last_event: Optional[str] = None
        self.frames_yielded = 0
        self.discarded_lines = 0

    def feed(self, chunk: Union[bytes, str]) -> Iterator[str]:
        """
        Append a chunk and yield the payload of every completed ``data:`` line.

        The trailing fragment after the last newline stays buffered until
        the next chunk (or flush()).
        """
        if isinstance(chunk, bytes):
            self._buffer += self._decoder.decode(chunk)
        else:
            self._buffer += chunk

        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            payload = self._process_line(line)
            if payload is not None:
                yield payload

    def flush(self) -> Iterator[str]:
        """Process whatever is left at end of stream."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        payload = self._process_line(line)
        if payload is not None:
            yield payload

    def _process_line(self, line: str) -> Optional[str]:
        line = line.strip()

        # Blank lines separate events; ":" lines are keep-alive comments
        if not line or line.startswith(":"):
            return None

        if line.startswith("event:"):
            self.last_event = line[len("event:"):].strip()
            return None

        if line.startswith("data:"):
            self.frames_yielded += 1
            return line[len("data:"):].lstrip()

        self.discarded_lines += 1
        return None


def parse_frame(
    payload: str,
    log: Optional[StructuredLogger] = None,
) -> Optional[Dict[str, Any]]:
    """
    Parse a data payload as a JSON object.

    Invalid JSON (or JSON that is not an object) is logged and skipped;
    one bad frame never ends a session.
    """
    log = log or logger
    try:
        frame = json.loads(payload)
    except json.JSONDecodeError as e:
        log.warning(
            "Dropping SSE frame with invalid JSON",
            error=str(e),
            payload_preview=payload[:200],
        )
        return None

    if not isinstance(frame, dict):
        log.warning(
            "Dropping SSE frame that is not a JSON object",
            payload_preview=payload[:200],
        )
        return None

    return frame
