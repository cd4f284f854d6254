"""TOML configuration loader with env overrides."""

import logging
import os
import tomllib
from pathlib import Path

from diffpilot.domain.ports.config import (
    AppConfig,
    PersistenceConfig,
    PresetsConfig,
    SecurityConfig,
    ServerConfig,
    TelegramConfig,
    ToolServerConfig,
    WorkflowConfig,
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _load_toml(path: Path) -> dict:
    """Load TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _split_ids(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides."""
    if command := os.getenv("TOOL_SERVER_COMMAND"):
        config.setdefault("tool_server", {})["command"] = command.strip()
    if token := os.getenv("BOT_TOKEN"):
        config.setdefault("telegram", {})["bot_token"] = token.strip()
    if users := os.getenv("TELEGRAM_ALLOWED_USERS"):
        config.setdefault("telegram", {})["allowed_user_ids"] = _split_ids(users)
    if admin := os.getenv("TELEGRAM_ADMIN_CHAT_ID"):
        admin = admin.strip()
        config.setdefault("telegram", {})["notify_chat_id"] = admin
        presets = config.setdefault("presets", {})
        seeded = list(presets.get("seed_user_ids") or [])
        if admin not in seeded:
            seeded.append(admin)
        presets["seed_user_ids"] = seeded
    if path := os.getenv("PRESETS_FILE"):
        config.setdefault("presets", {})["file"] = path.strip()
    if path := os.getenv("PROJECTS_FILE"):
        config.setdefault("persistence", {})["projects_file"] = path.strip()
    if flag := os.getenv("ALLOW_REGENERATE_DIFF"):
        config.setdefault("workflow", {})["allow_regenerate_diff"] = flag.strip().lower() in _TRUE_VALUES
    if port := os.getenv("PORT"):
        try:
            config.setdefault("server", {})["port"] = int(port)
        except ValueError:
            logger.warning("Invalid PORT env value: %r, ignoring", port)
    if level := os.getenv("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level.upper()
    if path := os.getenv("LOG_FILE"):
        config.setdefault("logging", {})["file"] = path.strip()
    if rate := os.getenv("RATE_LIMIT_PER_MINUTE"):
        try:
            config.setdefault("security", {})["rate_limit_requests_per_minute"] = int(rate)
        except ValueError:
            logger.warning("Invalid RATE_LIMIT_PER_MINUTE env value: %r, ignoring", rate)
    return config


def load_config(config_dir: Path | None = None) -> AppConfig:
    """Load configuration from TOML files with env overrides.

    Loads default.toml, then development.toml if exists.
    """
    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent.parent.parent / "config"

    config: dict = {}

    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = _load_toml(default_path)

    dev_path = config_dir / "development.toml"
    if dev_path.exists():
        dev_config = _load_toml(dev_path)
        for key, value in dev_config.items():
            if isinstance(value, dict) and key in config and isinstance(config[key], dict):
                config[key] = {**config[key], **value}
            else:
                config[key] = value

    config = _apply_env_overrides(config)

    server = ServerConfig(**(config.get("server") or {}))
    tool_server_raw = dict(config.get("tool_server") or {})
    # [tool_server.timeouts] replaces individual entries, not the whole table
    timeouts = {**ToolServerConfig().timeouts, **(tool_server_raw.pop("timeouts", None) or {})}
    tool_server = ToolServerConfig(timeouts=timeouts, **tool_server_raw)
    workflow = WorkflowConfig(**(config.get("workflow") or {}))
    presets = PresetsConfig(**(config.get("presets") or {}))
    persistence = PersistenceConfig(**(config.get("persistence") or {}))
    telegram = TelegramConfig(**(config.get("telegram") or {}))
    security = SecurityConfig(**(config.get("security") or {}))
    logging_raw = config.get("logging") or {}
    log_level = logging_raw.get("level", "INFO")
    log_file = (logging_raw.get("file") or "").strip()
    log_rotation_max_mb = int(logging_raw.get("log_rotation_max_mb", 5))
    log_rotation_backups = int(logging_raw.get("log_rotation_backups", 3))

    return AppConfig(
        server=server,
        tool_server=tool_server,
        workflow=workflow,
        presets=presets,
        persistence=persistence,
        telegram=telegram,
        security=security,
        log_level=log_level,
        log_file=log_file,
        log_rotation_max_mb=log_rotation_max_mb,
        log_rotation_backups=log_rotation_backups,
    )
