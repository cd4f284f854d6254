"""Dependency Injection Container - centralized service management."""

from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING

from diffpilot.application.projects.registry import ProjectRegistry
from diffpilot.application.workflow.session_store import WorkflowSessionRepository
from diffpilot.domain.entities.project import ProjectPreset
from diffpilot.domain.ports.config import AppConfig
from diffpilot.domain.ports.tool_server import ToolServerPort
from diffpilot.infrastructure.config import load_config

if TYPE_CHECKING:
    from diffpilot.application.commands.dispatcher import CommandDispatcher
    from diffpilot.application.workflow.use_case import WorkflowOrchestrator


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached, so the bot
    and the HTTP app share one registry, one session store and one tool
    server process.

    Usage:
        container = Container()
        dispatcher = container.dispatcher
    """

    def __init__(self, config: AppConfig | None = None, tool_server: ToolServerPort | None = None):
        """Initialize container with optional config and tool server overrides."""
        self._config_override = config
        self._tool_server_override = tool_server

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def tool_server(self) -> ToolServerPort:
        """Shared tool server client, started lazily on the first call."""
        if self._tool_server_override is not None:
            return self._tool_server_override
        from diffpilot.infrastructure.toolserver.client import ToolServerClient
        return ToolServerClient.from_config(self.config.tool_server)

    @cached_property
    def project_registry(self) -> ProjectRegistry:
        """Per-user project registry; persisted when a file is configured."""
        projects_file = self.config.persistence.projects_file
        return ProjectRegistry(Path(projects_file) if projects_file else None)

    @cached_property
    def session_repository(self) -> WorkflowSessionRepository:
        """In-memory workflow sessions keyed by (user, conversation)."""
        return WorkflowSessionRepository()

    @cached_property
    def presets(self) -> list[ProjectPreset]:
        """Project presets read once from the presets file."""
        from diffpilot.infrastructure.presets import load_presets
        return load_presets(Path(self.config.presets.file))

    @cached_property
    def orchestrator(self) -> "WorkflowOrchestrator":
        """Workflow state machine shared by every transport."""
        from diffpilot.application.workflow.use_case import WorkflowOrchestrator
        return WorkflowOrchestrator(
            projects=self.project_registry,
            sessions=self.session_repository,
            tool_server=self.tool_server,
            allow_regenerate_diff=self.config.workflow.allow_regenerate_diff,
        )

    @cached_property
    def dispatcher(self) -> "CommandDispatcher":
        """Chat command dispatcher."""
        from diffpilot.application.commands.dispatcher import CommandDispatcher
        return CommandDispatcher(
            orchestrator=self.orchestrator,
            projects=self.project_registry,
            tool_server=self.tool_server,
            presets=self.presets,
            diff_preview_chars=self.config.workflow.diff_preview_chars,
        )

    def seed_presets(self) -> int:
        """Register presets for the configured seed users; returns entries added."""
        added = 0
        for user_id in self.config.presets.seed_user_ids:
            added += self.project_registry.seed(user_id, self.presets)
        return added

    async def aclose(self) -> None:
        """Stop the tool server if it was ever created."""
        if "tool_server" in self.__dict__:
            await self.tool_server.close()

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Container) -> None:
    """Install a prebuilt container (tests, bot entry point)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None
