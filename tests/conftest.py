"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from diffpilot.application.projects.registry import ProjectRegistry
from diffpilot.application.workflow.session_store import WorkflowSessionRepository
from diffpilot.application.workflow.use_case import WorkflowOrchestrator
from diffpilot.domain.ports.config import AppConfig, SecurityConfig
from diffpilot.domain.ports.tool_server import (
    FailureReason,
    ToolCallResult,
    ToolFailure,
    ToolSuccess,
)

PLAN = {
    "success": True,
    "summary": "Add request logging middleware",
    "files": ["src/app.py"],
    "modules": ["app"],
    "estimatedComplexity": "low",
}

DIFF = (
    "--- a/src/app.py\n"
    "+++ b/src/app.py\n"
    "@@ -1,2 +1,3 @@\n"
    " import logging\n"
    "+logger = logging.getLogger(__name__)\n"
)


class FakeToolServer:
    """In-memory ToolServerPort with scripted per-tool results.

    ``results[tool]`` is a list consumed front to back; the last entry is
    reused once the list is down to one. Setting ``gate`` makes every call
    wait on it, which lets a test cancel while a call is in flight.
    """

    def __init__(self) -> None:
        self.results: dict[str, list[ToolCallResult]] = {
            "analyze_change_plan": [ToolSuccess(PLAN)],
            "generate_code_diff": [ToolSuccess({"success": True, "diff": DIFF})],
            "apply_code_diff": [ToolSuccess({"success": True, "appliedFiles": ["src/app.py"]})],
            "structure_client_requirement": [ToolSuccess({"title": "Logging", "items": ["add middleware"]})],
        }
        self.plan = PLAN
        self.diff = DIFF
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.tools: list[dict[str, Any]] = [{"name": "analyze_change_plan", "description": "Plan a change"}]
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()
        self.closed = False
        self.state = None
        self.pending_count = 0
        self.dropped_lines = 0

    def script(self, tool_name: str, *results: ToolCallResult) -> None:
        self.results[tool_name] = list(results)

    def fail(self, tool_name: str, reason: FailureReason = FailureReason.TOOL_ERROR) -> None:
        self.script(tool_name, ToolFailure(reason, f"{tool_name} failed"))

    def called(self, tool_name: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == tool_name]

    async def call(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        self.calls.append((tool_name, dict(arguments or {})))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        queue = self.results[tool_name]
        return queue.pop(0) if len(queue) > 1 else queue[0]

    async def list_tools(self) -> list[dict[str, Any]]:
        return list(self.tools)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def tool_server() -> FakeToolServer:
    return FakeToolServer()


@pytest.fixture
def registry() -> ProjectRegistry:
    """In-memory registry: user u1 with active project 'web'."""
    registry = ProjectRegistry()
    registry.register("u1", "web", "/srv/web")
    registry.set_active("u1", "web")
    return registry


@pytest.fixture
def sessions() -> WorkflowSessionRepository:
    return WorkflowSessionRepository()


@pytest.fixture
def orchestrator(registry, sessions, tool_server) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(projects=registry, sessions=sessions, tool_server=tool_server)


@pytest.fixture
def container(tool_server):
    """Global container wired to the fake tool server."""
    from diffpilot.api.container import Container, reset_container, set_container
    from diffpilot.api.dependencies import limiter

    config = AppConfig(security=SecurityConfig(rate_limit_requests_per_minute=10_000))
    c = Container(config=config, tool_server=tool_server)
    set_container(c)
    limiter.reset()
    yield c
    reset_container()


@pytest.fixture
async def client(container):
    """HTTP client for the FastAPI app (lifespan not run)."""
    from diffpilot.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
