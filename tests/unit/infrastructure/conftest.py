"""Fixtures for tool server client tests."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from diffpilot.domain.errors import ToolTransportError
from diffpilot.domain.ports.config import ToolServerConfig
from diffpilot.infrastructure.toolserver.client import ToolServerClient

Responder = Callable[[dict[str, Any]], list[bytes] | None]


class FakeTransport:
    """In-memory duplex stream standing in for the tool server process.

    Every written request is decoded and recorded; ``responder`` (if set)
    returns the raw chunks to push back. Tests can also push bytes at any
    time with ``feed`` and simulate process exit with ``eof``.
    """

    def __init__(self, responder: Responder | None = None, fail_start: bool = False) -> None:
        self.responder = responder
        self.fail_start = fail_start
        self.requests: list[dict[str, Any]] = []
        self.starts = 0
        self.closed = False
        self._incoming: asyncio.Queue[bytes] = asyncio.Queue()

    @property
    def is_running(self) -> bool:
        return self.starts > 0 and not self.closed

    async def start(self) -> None:
        self.starts += 1
        if self.fail_start:
            raise ToolTransportError("spawn failed: no such file")

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise ToolTransportError("write after close")
        request = json.loads(data)
        self.requests.append(request)
        if self.responder is not None:
            for chunk in self.responder(request) or []:
                self.feed(chunk)

    def feed(self, data: bytes) -> None:
        self._incoming.put_nowait(data)

    def eof(self) -> None:
        self._incoming.put_nowait(b"")

    async def read(self) -> bytes:
        return await self._incoming.get()

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(b"")


@pytest.fixture
def transports() -> list[FakeTransport]:
    """Every transport the client factory has created, in order."""
    return []


@pytest.fixture
async def make_client(transports):
    """Build a client whose factory hands out FakeTransports."""
    clients: list[ToolServerClient] = []

    def _make(
        responder: Responder | None = None,
        fail_start: bool = False,
        **config: Any,
    ) -> ToolServerClient:
        def factory() -> FakeTransport:
            transport = FakeTransport(responder, fail_start=fail_start)
            transports.append(transport)
            return transport

        client = ToolServerClient(factory, ToolServerConfig(**config))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.close()

