"""Tool Server Client - JSON-RPC request/response correlation over one subprocess.

One client (and one tool server process) is shared by every conversation.
Each request gets a fresh integer id; a background reader splits the
server's stdout into lines and resolves the future registered under the
id it finds in each response. Responses may arrive in any order, so calls
never block each other.

Failure modes are kept apart:

* ``ToolTransportError`` - spawn failure, write failure, process exit.
* ``ToolTimeoutError`` - no response within the tool's deadline.
* ``ToolBusinessError`` - the server answered with a JSON-RPC ``error``.

``call()`` folds them into a ``ToolFailure`` with the matching reason;
``request()`` raises them.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from diffpilot.domain.errors import (
    ToolBusinessError,
    ToolCallError,
    ToolTimeoutError,
    ToolTransportError,
)
from diffpilot.domain.ports.config import ToolServerConfig
from diffpilot.domain.ports.tool_server import (
    FailureReason,
    ToolCallResult,
    ToolFailure,
    ToolSuccess,
)
from diffpilot.infrastructure.toolserver.envelope import (
    describe_error,
    is_error_result,
    unwrap_tool_payload,
)
from diffpilot.infrastructure.toolserver.framing import (
    LineBuffer,
    decode_response,
    encode_request,
)
from diffpilot.infrastructure.toolserver.transport import (
    SubprocessTransport,
    ToolServerTransport,
)

logger = logging.getLogger(__name__)

TransportFactory = Callable[[], ToolServerTransport]


class ClientState(str, Enum):
    """Lifecycle of the tool server connection."""

    IDLE = "idle"  # never started, or closed
    RUNNING = "running"
    EXITED = "exited"  # process ended; next call respawns
    FAILED = "failed"  # spawn failed; calls fail fast until close()


@dataclass
class PendingRequest:
    """Request awaiting its response."""

    request_id: int
    tool_name: str
    future: asyncio.Future


class ToolServerClient:
    """Lazily started, shared JSON-RPC client for the tool server."""

    def __init__(
        self,
        transport_factory: TransportFactory,
        config: ToolServerConfig | None = None,
    ) -> None:
        """Initialize; the transport is created on the first call."""
        self._transport_factory = transport_factory
        self._config = config or ToolServerConfig()
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._transport: ToolServerTransport | None = None
        self._reader_task: asyncio.Task | None = None
        self._start_lock = asyncio.Lock()
        self._state = ClientState.IDLE
        self._spawn_error: str | None = None
        self.dropped_lines = 0

    @classmethod
    def from_config(cls, config: ToolServerConfig) -> "ToolServerClient":
        """Client that spawns ``config.command`` as a subprocess."""

        def factory() -> ToolServerTransport:
            return SubprocessTransport(
                config.command,
                cwd=config.cwd,
                shutdown_timeout=config.shutdown_timeout,
            )

        return cls(factory, config)

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def call(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        """Invoke ``tools/call`` and unwrap the reply envelope."""
        timeout = self._config.timeout_for(tool_name)
        params = {"name": tool_name, "arguments": arguments or {}}
        try:
            result = await self.request("tools/call", params, timeout=timeout, tool_name=tool_name)
        except ToolTimeoutError as e:
            return ToolFailure(FailureReason.TIMEOUT, str(e))
        except ToolBusinessError as e:
            logger.error("Tool '%s' returned an error: %s", tool_name, e.detail)
            return ToolFailure(FailureReason.TOOL_ERROR, str(e))
        except ToolTransportError as e:
            logger.error("Tool '%s' transport failure: %s", tool_name, e)
            return ToolFailure(FailureReason.TRANSPORT, str(e))

        if is_error_result(result):
            logger.error("Tool '%s' flagged isError: %s", tool_name, unwrap_tool_payload(result))
            return ToolFailure(FailureReason.TOOL_ERROR, f"Tool '{tool_name}' reported an error")
        return ToolSuccess(unwrap_tool_payload(result))

    async def list_tools(self) -> list[dict[str, Any]]:
        """Return the server's ``tools/list`` entries.

        Raises:
            ToolCallError: on timeout, transport or server error

        """
        result = await self.request("tools/list", None, timeout=self._config.list_timeout)
        tools = result.get("tools") if isinstance(result, dict) else None
        return tools if isinstance(tools, list) else []

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None,
        *,
        timeout: float,
        tool_name: str | None = None,
    ) -> Any:
        """Send one request and wait for its matching response.

        Returns:
            The raw JSON-RPC ``result`` member

        Raises:
            ToolTransportError: server could not be started or reached
            ToolTimeoutError: deadline passed; the pending entry is removed
            ToolBusinessError: response carried an ``error`` member

        """
        label = tool_name or method
        transport = await self._ensure_started()

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id, label, future)
        try:
            await transport.write(encode_request(request_id, method, params))
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Request %d (%s) timed out after %ss", request_id, label, timeout)
            raise ToolTimeoutError(label, timeout) from None
        except ToolCallError as e:
            if e.tool_name is None:
                e.tool_name = label
            raise
        finally:
            self._pending.pop(request_id, None)

    async def close(self) -> None:
        """Terminate the tool server and fail whatever is still pending."""
        async with self._start_lock:
            transport, self._transport = self._transport, None
            reader, self._reader_task = self._reader_task, None
            self._state = ClientState.IDLE
            self._spawn_error = None
            if reader is not None:
                reader.cancel()
                try:
                    await reader
                except asyncio.CancelledError:
                    pass
            self._fail_pending(ToolTransportError("Tool server client closed"))
            if transport is not None:
                await transport.close()

    async def _ensure_started(self) -> ToolServerTransport:
        if self._state is ClientState.FAILED:
            raise ToolTransportError(f"Tool server unavailable: {self._spawn_error}")
        if self._state is ClientState.RUNNING and self._transport is not None:
            return self._transport

        async with self._start_lock:
            if self._state is ClientState.FAILED:
                raise ToolTransportError(f"Tool server unavailable: {self._spawn_error}")
            if self._state is ClientState.RUNNING and self._transport is not None:
                return self._transport

            transport = self._transport_factory()
            try:
                await transport.start()
            except (ToolTransportError, OSError) as e:
                self._state = ClientState.FAILED
                self._spawn_error = str(e)
                logger.error("Tool server failed to start: %s", e)
                raise ToolTransportError(f"Tool server unavailable: {e}") from e

            self._transport = transport
            self._state = ClientState.RUNNING
            self._reader_task = asyncio.create_task(self._read_loop(transport))
            return transport

    async def _read_loop(self, transport: ToolServerTransport) -> None:
        buffer = LineBuffer(self._config.max_line_bytes)
        reason = "Tool server exited"
        try:
            while True:
                chunk = await transport.read()
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    self._handle_line(line)
            tail = buffer.flush()
            if tail is not None:
                self._handle_line(tail)
            logger.warning("Tool server closed its output; failing %d pending request(s)", len(self._pending))
        except asyncio.CancelledError:
            reason = "Tool server client closed"
            raise
        except Exception as e:  # noqa: BLE001
            reason = f"Tool server read failed: {e}"
            logger.error("Tool server reader crashed", exc_info=True)
        finally:
            if self._transport is transport:
                self._transport = None
                self._reader_task = None
                self._state = ClientState.EXITED
            self._fail_pending(ToolTransportError(reason))

        await transport.close()

    def _handle_line(self, line: bytes) -> None:
        message = decode_response(line)
        if message is None:
            self.dropped_lines += 1
            return

        request_id = message.get("id")
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            logger.debug("Ignoring tool server message without numeric id: %s", message.get("method"))
            return

        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            logger.debug("Ignoring response for unknown or expired request %d", request_id)
            return

        error = message.get("error")
        if error is not None:
            pending.future.set_exception(
                ToolBusinessError(describe_error(error), tool_name=pending.tool_name, detail=error)
            )
        else:
            pending.future.set_result(message.get("result"))

    def _fail_pending(self, error: ToolTransportError) -> None:
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            if not entry.future.done():
                entry.future.set_exception(ToolTransportError(str(error), tool_name=entry.tool_name))
