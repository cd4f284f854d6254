"""End-to-end tests against a real child process speaking JSON-RPC on stdio."""

import shlex
import sys
import textwrap

import pytest

from diffpilot.domain.errors import ToolTransportError
from diffpilot.domain.ports.config import ToolServerConfig
from diffpilot.domain.ports.tool_server import FailureReason
from diffpilot.infrastructure.toolserver.client import ClientState, ToolServerClient
from diffpilot.infrastructure.toolserver.transport import SubprocessTransport

SERVER = textwrap.dedent(
    """
    import json
    import sys

    print("tool server ready", file=sys.stderr, flush=True)
    print("not json on stdout", flush=True)
    for line in sys.stdin:
        request = json.loads(line)
        if request["method"] == "tools/list":
            result = {"tools": [{"name": "echo"}]}
        elif request["params"]["name"] == "exit":
            sys.exit(3)
        else:
            payload = {"success": True, "echo": request["params"]["arguments"]}
            result = {"content": [{"type": "text", "text": json.dumps(payload)}]}
        print(json.dumps({"jsonrpc": "2.0", "id": request["id"], "result": result}), flush=True)
    """
)


@pytest.fixture
def server_command(tmp_path) -> str:
    script = tmp_path / "server.py"
    script.write_text(SERVER, encoding="utf-8")
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"


@pytest.mark.asyncio
async def test_call_roundtrip(server_command):
    client = ToolServerClient.from_config(ToolServerConfig(command=server_command, default_timeout=10))
    try:
        result = await client.call("analyze_change_plan", {"requirement": "add logging"})
        tools = await client.list_tools()
    finally:
        await client.close()

    assert result.payload == {"success": True, "echo": {"requirement": "add logging"}}
    assert tools == [{"name": "echo"}]
    assert client.state is ClientState.IDLE


@pytest.mark.asyncio
async def test_process_exit_fails_call_then_respawns(server_command):
    client = ToolServerClient.from_config(ToolServerConfig(command=server_command, default_timeout=10))
    try:
        failed = await client.call("exit", {})
        again = await client.call("echo", {"n": 1})
    finally:
        await client.close()

    assert failed.reason is FailureReason.TRANSPORT
    assert again.payload["echo"] == {"n": 1}


@pytest.mark.asyncio
async def test_missing_executable_is_transport_error(tmp_path):
    transport = SubprocessTransport(str(tmp_path / "no-such-binary"))
    with pytest.raises(ToolTransportError):
        await transport.start()


@pytest.mark.asyncio
async def test_empty_command_is_transport_error():
    with pytest.raises(ToolTransportError):
        await SubprocessTransport("").start()
