"""JSON-RPC over stdio client for the code-modification tool server."""

from diffpilot.infrastructure.toolserver.client import ClientState, ToolServerClient
from diffpilot.infrastructure.toolserver.envelope import unwrap_tool_payload
from diffpilot.infrastructure.toolserver.transport import SubprocessTransport, ToolServerTransport

__all__ = [
    "ClientState",
    "SubprocessTransport",
    "ToolServerClient",
    "ToolServerTransport",
    "unwrap_tool_payload",
]
