"""Tests for TOML config loader."""

import tempfile
from pathlib import Path

import pytest

from diffpilot.infrastructure.config.toml_loader import _apply_env_overrides, load_config

ENV_VARS = (
    "TOOL_SERVER_COMMAND",
    "BOT_TOKEN",
    "TELEGRAM_ALLOWED_USERS",
    "TELEGRAM_ADMIN_CHAT_ID",
    "PRESETS_FILE",
    "PROJECTS_FILE",
    "ALLOW_REGENERATE_DIFF",
    "PORT",
    "LOG_LEVEL",
    "LOG_FILE",
    "RATE_LIMIT_PER_MINUTE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_config(self):
        """Loads the repository's default configuration."""
        config = load_config()

        assert config.tool_server.default_timeout == 30.0
        assert config.tool_server.timeout_for("generate_code_diff") == 90.0
        assert config.tool_server.timeout_for("analyze_change_plan") == 45.0
        assert config.tool_server.timeout_for("apply_code_diff") == 10.0
        assert config.tool_server.timeout_for("structure_client_requirement") == 30.0
        assert config.workflow.allow_regenerate_diff is False
        assert config.telegram.max_message_length == 4000

    def test_loads_from_custom_dir(self):
        """Loads config from custom directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "default.toml").write_text("""
[tool_server]
command = "node server.js"

[tool_server.timeouts]
generate_code_diff = 120

[server]
port = 9999
""")
            config = load_config(Path(tmpdir))

            assert config.tool_server.command == "node server.js"
            assert config.server.port == 9999
            assert config.tool_server.timeout_for("generate_code_diff") == 120
            # untouched entries keep their defaults
            assert config.tool_server.timeout_for("apply_code_diff") == 10.0

    def test_merges_development_config(self):
        """Merges development.toml over default.toml."""
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "default.toml").write_text("""
[workflow]
allow_regenerate_diff = false
diff_preview_chars = 500

[server]
port = 8000
""")
            (Path(tmpdir) / "development.toml").write_text("""
[workflow]
allow_regenerate_diff = true
""")
            config = load_config(Path(tmpdir))

            assert config.workflow.allow_regenerate_diff is True
            assert config.workflow.diff_preview_chars == 500
            assert config.server.port == 8000

    def test_handles_missing_files(self):
        """Empty directory gives model defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(Path(tmpdir))

            assert config.tool_server.command == ""
            assert config.presets.file == "projects.config.json"

    def test_numeric_telegram_ids_become_strings(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "default.toml").write_text("""
[telegram]
allowed_user_ids = [12345]
notify_chat_id = 12345
""")
            config = load_config(Path(tmpdir))

            assert config.telegram.allowed_user_ids == ["12345"]
            assert config.telegram.notify_chat_id == "12345"


class TestEnvOverrides:
    """Tests for _apply_env_overrides."""

    def test_tool_server_command(self, monkeypatch):
        monkeypatch.setenv("TOOL_SERVER_COMMAND", " node dist/server.js ")
        result = _apply_env_overrides({})
        assert result["tool_server"]["command"] == "node dist/server.js"

    def test_telegram_settings(self, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv("TELEGRAM_ALLOWED_USERS", "1, 2,,3")
        result = _apply_env_overrides({})

        assert result["telegram"]["bot_token"] == "123:abc"
        assert result["telegram"]["allowed_user_ids"] == ["1", "2", "3"]

    def test_admin_chat_is_notified_and_seeded(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_ADMIN_CHAT_ID", "777")
        result = _apply_env_overrides({"presets": {"seed_user_ids": ["1"]}})

        assert result["telegram"]["notify_chat_id"] == "777"
        assert result["presets"]["seed_user_ids"] == ["1", "777"]

    def test_allow_regenerate_flag(self, monkeypatch):
        monkeypatch.setenv("ALLOW_REGENERATE_DIFF", "yes")
        assert _apply_env_overrides({})["workflow"]["allow_regenerate_diff"] is True
        monkeypatch.setenv("ALLOW_REGENERATE_DIFF", "0")
        assert _apply_env_overrides({})["workflow"]["allow_regenerate_diff"] is False

    def test_invalid_port_ignored(self, monkeypatch):
        monkeypatch.setenv("PORT", "not-a-number")
        result = _apply_env_overrides({"server": {"port": 8000}})
        assert result["server"]["port"] == 8000

    def test_log_level_uppercased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert _apply_env_overrides({})["logging"]["level"] == "DEBUG"

    def test_env_applies_through_load_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROJECTS_FILE", str(tmp_path / "projects.json"))
        monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "5")
        config = load_config(tmp_path)

        assert config.persistence.projects_file == str(tmp_path / "projects.json")
        assert config.security.rate_limit_requests_per_minute == 5
