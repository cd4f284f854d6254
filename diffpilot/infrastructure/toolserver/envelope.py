"""Tool reply envelope unwrapping.

Tool servers following the MCP reply convention wrap the real payload as
``{"content": [{"type": "text", "text": ...}]}`` where ``text`` is usually a
JSON document encoded as a string. Every consumer of a tool result goes
through ``unwrap_tool_payload`` so the rules live in one place.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def _first_content_text(result: Any) -> tuple[bool, Any]:
    if not isinstance(result, dict):
        return False, None
    content = result.get("content")
    if not isinstance(content, list) or not content:
        return False, None
    first = content[0]
    if not isinstance(first, dict) or "text" not in first:
        return False, None
    return True, first["text"]


def unwrap_tool_payload(result: Any) -> Any:
    """Return the payload carried by a ``tools/call`` result.

    Rules, in order:
    1. ``content[0].text`` is a string: JSON-decode it; if that fails the raw
       string is the payload.
    2. ``content[0].text`` is already structured (object or array): use it.
    3. Otherwise the result itself is the payload.
    """
    found, text = _first_content_text(result)
    if found:
        if isinstance(text, str):
            try:
                return json.loads(text)
            except (ValueError, RecursionError):
                logger.debug("Tool content text is not JSON, keeping raw string")
                return text
        if isinstance(text, (dict, list)):
            return text
    return result


def is_error_result(result: Any) -> bool:
    """True for results flagged with the MCP ``isError`` marker."""
    return isinstance(result, dict) and result.get("isError") is True


def describe_error(error: Any) -> str:
    """Human-readable message from a JSON-RPC ``error`` member."""
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
        return json.dumps(error, ensure_ascii=False)
    if error is None:
        return "Tool server error"
    return str(error)
