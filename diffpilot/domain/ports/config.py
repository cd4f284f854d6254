"""Configuration models - one pydantic section per TOML table."""

from pydantic import BaseModel, ConfigDict, Field


class ToolServerConfig(BaseModel):
    """Tool server subprocess and per-tool deadlines."""

    # Command line, e.g. "node /opt/agent/index.js". Split with shlex, no shell.
    command: str = ""
    cwd: str | None = None
    default_timeout: float = 30.0
    list_timeout: float = 5.0
    # Seconds per tool; tools not listed use default_timeout.
    timeouts: dict[str, float] = Field(
        default_factory=lambda: {
            "generate_code_diff": 90.0,
            "analyze_change_plan": 45.0,
            "apply_code_diff": 10.0,
        }
    )
    shutdown_timeout: float = 5.0
    max_line_bytes: int = 16 * 1024 * 1024

    model_config = ConfigDict(extra="ignore")

    def timeout_for(self, tool_name: str) -> float:
        """Deadline for a tool; unknown tools get the default."""
        return self.timeouts.get(tool_name, self.default_timeout)


class WorkflowConfig(BaseModel):
    """Workflow behaviour."""

    # Re-running preview while a diff exists: False rejects, True regenerates.
    allow_regenerate_diff: bool = False
    diff_preview_chars: int = 500


class PresetsConfig(BaseModel):
    """Project presets file, read once at startup."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    file: str = "projects.config.json"
    # Users whose registry is seeded with the presets (first preset becomes active).
    seed_user_ids: list[str] = []


class PersistenceConfig(BaseModel):
    """Persistence settings."""

    # Empty = registry lives in memory only.
    projects_file: str = ""


class TelegramConfig(BaseModel):
    """Telegram transport."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    bot_token: str = ""
    allowed_user_ids: list[str] = []  # empty = everyone
    notify_chat_id: str | None = None  # receives the project list on startup
    max_message_length: int = 4000


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 100


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class AppConfig(BaseModel):
    """Full application configuration."""

    server: ServerConfig = ServerConfig()
    tool_server: ToolServerConfig = ToolServerConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    presets: PresetsConfig = PresetsConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    telegram: TelegramConfig = TelegramConfig()
    security: SecurityConfig = SecurityConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout. Rotation when file exceeds max_mb.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3
