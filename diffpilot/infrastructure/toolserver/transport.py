"""Tool server transport - duplex byte stream to the JSON-RPC subprocess."""

import asyncio
import logging
import os
import shlex
from typing import Protocol

from diffpilot.domain.errors import ToolTransportError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class ToolServerTransport(Protocol):
    """Byte-level channel to the tool server.

    ``read`` returns arbitrary chunks (not lines) and ``b""`` once the peer
    has closed its output.
    """

    @property
    def is_running(self) -> bool:
        ...

    async def start(self) -> None:
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def read(self) -> bytes:
        ...

    async def close(self) -> None:
        ...


class SubprocessTransport:
    """Runs the tool server as a child process and talks over its stdio."""

    def __init__(
        self,
        command: str,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        shutdown_timeout: float = 5.0,
    ) -> None:
        """Initialize with the command line; nothing is spawned until start()."""
        self._command = command
        self._cwd = cwd
        self._env = env
        self._shutdown_timeout = shutdown_timeout
        self._proc: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        argv = shlex.split(self._command)
        if not argv:
            raise ToolTransportError("Tool server command is not configured")
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env={**os.environ, **self._env} if self._env else None,
            )
        except OSError as e:
            raise ToolTransportError(f"Failed to start tool server: {e}") from e
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        logger.info("Tool server started (pid %s): %s", self._proc.pid, argv[0])

    async def write(self, data: bytes) -> None:
        if not self.is_running or self._proc.stdin is None:
            raise ToolTransportError("Tool server is not running")
        try:
            self._proc.stdin.write(data)
            await self._proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ToolTransportError(f"Tool server input closed: {e}") from e

    async def read(self) -> bytes:
        if self._proc is None or self._proc.stdout is None:
            return b""
        return await self._proc.stdout.read(READ_CHUNK_SIZE)

    async def close(self) -> None:
        proc = self._proc
        if proc is None:
            return
        if proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=self._shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning("Tool server did not exit after %ss, killing", self._shutdown_timeout)
                proc.kill()
                await proc.wait()
        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None
        logger.info("Tool server stopped (exit code %s)", proc.returncode)
        self._proc = None

    async def _drain_stderr(self) -> None:
        assert self._proc is not None and self._proc.stderr is not None
        while True:
            line = await self._proc.stderr.readline()
            if not line:
                break
            logger.warning("Tool server stderr: %s", line.decode("utf-8", errors="replace").rstrip())
