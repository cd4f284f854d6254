"""FastAPI dependencies - DI container accessors and rate limiter."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from diffpilot.api.container import get_container
from diffpilot.application.projects.registry import ProjectRegistry
from diffpilot.application.workflow.use_case import WorkflowOrchestrator
from diffpilot.domain.ports.tool_server import ToolServerPort

limiter = Limiter(key_func=get_remote_address)


def rate_limit() -> str:
    """Per-minute limit string from config."""
    return f"{get_container().config.security.rate_limit_requests_per_minute}/minute"


def get_orchestrator() -> WorkflowOrchestrator:
    return get_container().orchestrator


def get_project_registry() -> ProjectRegistry:
    return get_container().project_registry


def get_tool_server() -> ToolServerPort:
    return get_container().tool_server
