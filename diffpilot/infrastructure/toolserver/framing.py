"""Newline-delimited JSON-RPC framing over a byte stream.

Chunks read from the tool server's stdout do not line up with messages: one
read may carry half a line, or several lines at once. ``LineBuffer`` keeps
the unterminated tail between reads and only hands out complete lines.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class LineBuffer:
    """Accumulates bytes and yields complete, non-blank lines."""

    def __init__(self, max_line_bytes: int = 16 * 1024 * 1024) -> None:
        self._buffer = bytearray()
        self._max_line_bytes = max_line_bytes
        self._discarding = False  # inside an oversized line, skip until next newline

    def feed(self, data: bytes) -> list[bytes]:
        """Add a chunk; return the lines it completed (without terminators)."""
        lines: list[bytes] = []
        start = 0
        while True:
            newline = data.find(b"\n", start)
            if newline == -1:
                break
            if self._discarding:
                self._discarding = False
            else:
                self._buffer.extend(data[start:newline])
                line = bytes(self._buffer).rstrip(b"\r")
                if len(line) > self._max_line_bytes:
                    self._warn_oversized()
                elif line.strip():
                    lines.append(line)
            self._buffer.clear()
            start = newline + 1

        if not self._discarding:
            self._buffer.extend(data[start:])
            if len(self._buffer) > self._max_line_bytes:
                self._warn_oversized()
                self._buffer.clear()
                self._discarding = True
        return lines

    def _warn_oversized(self) -> None:
        logger.warning("Dropping tool server line longer than %d bytes", self._max_line_bytes)

    def flush(self) -> bytes | None:
        """Return the unterminated tail at end of stream, if any."""
        tail = bytes(self._buffer).rstrip(b"\r")
        self._buffer.clear()
        self._discarding = False
        return tail if tail.strip() else None

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)


def encode_request(request_id: int, method: str, params: dict[str, Any] | None = None) -> bytes:
    """Serialize one JSON-RPC request as a single line."""
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8") + b"\n"


def decode_response(line: bytes) -> dict[str, Any] | None:
    """Parse one line; None for anything that is not a JSON object.

    Tool servers sometimes print log output on stdout; such lines are
    tolerated and only reported at debug level.
    """
    try:
        message = json.loads(line.decode("utf-8", errors="replace"))
    except (ValueError, RecursionError):
        logger.debug("Ignoring non-JSON tool server output: %.200s", line)
        return None
    if not isinstance(message, dict):
        logger.debug("Ignoring non-object JSON from tool server: %.200s", line)
        return None
    return message
