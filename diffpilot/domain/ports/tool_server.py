"""Tool Server Port - interface for the JSON-RPC code-modification agent."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class FailureReason(str, Enum):
    """Why a tool call produced no usable payload."""

    TRANSPORT = "transport"  # spawn failure, broken pipe, process exit
    TIMEOUT = "timeout"
    TOOL_ERROR = "tool_error"  # JSON-RPC error or isError result


@dataclass(frozen=True)
class ToolSuccess:
    """Unwrapped tool payload (structured object or opaque string)."""

    payload: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ToolFailure:
    """Tool call failure with a distinguishable reason."""

    reason: FailureReason
    message: str

    @property
    def ok(self) -> bool:
        return False


ToolCallResult = ToolSuccess | ToolFailure


class ToolServerPort(Protocol):
    """Interface for the tool server client."""

    async def call(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        """Invoke a tool; never raises for tool/transport/timeout failures."""
        ...

    async def list_tools(self) -> list[dict[str, Any]]:
        """List tools advertised by the server."""
        ...

    async def close(self) -> None:
        """Terminate the server process."""
        ...
