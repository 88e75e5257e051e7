"""Tests for configuration module."""

import json

import pytest

from stack_rollback.infrastructure.config import (
    PulumiConfig,
    RollbackConfig,
    StackConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("PULUMI_STACK", raising=False)
    for key in ("ROLLBACK_LOG_LEVEL", "ROLLBACK_LOG_FORMAT", "ROLLBACK_STACK_NAME",
                "ROLLBACK_STACK_PROJECT_PATH", "ROLLBACK_PULUMI_BACKEND_URL",
                "ROLLBACK_PULUMI_COMMAND_TIMEOUT", "ROLLBACK_STACK"):
        monkeypatch.delenv(key, raising=False)


class TestDefaultConfig:
    def test_defaults(self):
        config = load_config(path="/nonexistent/rollback.json")
        assert config.log_level == "WARNING"
        assert config.log_format == "text"
        assert config.stack.project_path == "."
        assert config.stack.name == ""
        assert config.pulumi.command == "pulumi"
        assert config.pulumi.checkpoint_source == "auto"
        assert config.pulumi.command_timeout == 300

    def test_all_sections_present(self):
        config = load_config(path="/nonexistent/rollback.json")
        assert isinstance(config.stack, StackConfig)
        assert isinstance(config.pulumi, PulumiConfig)

    def test_frozen(self):
        config = RollbackConfig()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"


class TestFileConfig:
    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "rollback.json"
        config_file.write_text(json.dumps({
            "log_level": "DEBUG",
            "log_format": "json",
            "stack": {"name": "prod", "project_path": "infra"},
            "pulumi": {"backend_url": "file://~", "checkpoint_source": "file"},
        }))

        config = load_config(path=str(config_file))
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        assert config.stack.name == "prod"
        assert config.stack.project_path == "infra"
        assert config.pulumi.backend_url == "file://~"
        assert config.pulumi.checkpoint_source == "file"

    def test_partial_config(self, tmp_path):
        config_file = tmp_path / "rollback.json"
        config_file.write_text(json.dumps({"pulumi": {"command_timeout": 60}}))

        config = load_config(path=str(config_file))
        assert config.pulumi.command_timeout == 60
        assert config.pulumi.command == "pulumi"  # default preserved
        assert config.stack.project_path == "."  # default preserved

    def test_invalid_json_returns_defaults(self, tmp_path):
        config_file = tmp_path / "rollback.json"
        config_file.write_text("not valid json{{{")

        config = load_config(path=str(config_file))
        assert config.pulumi.command == "pulumi"

    def test_non_object_returns_defaults(self, tmp_path):
        config_file = tmp_path / "rollback.json"
        config_file.write_text("[1, 2, 3]")

        config = load_config(path=str(config_file))
        assert config.log_level == "WARNING"

    def test_unknown_keys_ignored(self, tmp_path):
        config_file = tmp_path / "rollback.json"
        config_file.write_text(json.dumps({
            "stack": {"name": "dev", "unknown_key": "ignored"},
        }))

        config = load_config(path=str(config_file))
        assert config.stack.name == "dev"

    @pytest.mark.parametrize("data", [{"stack": "dev"}, {"pulumi": "x"}, {"stack": [1]}])
    def test_non_object_section_uses_defaults(self, tmp_path, data):
        config_file = tmp_path / "rollback.json"
        config_file.write_text(json.dumps(data))

        config = load_config(path=str(config_file))
        assert config.stack.name == ""
        assert config.stack.project_path == "."
        assert config.pulumi.command == "pulumi"

    def test_env_fills_non_object_section(self, tmp_path, monkeypatch):
        config_file = tmp_path / "rollback.json"
        config_file.write_text(json.dumps({"stack": "dev"}))
        monkeypatch.setenv("ROLLBACK_STACK_NAME", "qa")

        config = load_config(path=str(config_file))
        assert config.stack.name == "qa"

    def test_default_path_is_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "rollback.json").write_text(json.dumps({"stack": {"name": "qa"}}))
        monkeypatch.chdir(tmp_path)

        assert load_config().stack.name == "qa"


class TestEnvOverride:
    def test_env_overrides_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "rollback.json"
        config_file.write_text(json.dumps({"stack": {"name": "dev"}}))
        monkeypatch.setenv("ROLLBACK_STACK_NAME", "staging")

        config = load_config(path=str(config_file))
        assert config.stack.name == "staging"

    def test_env_int_conversion(self, monkeypatch):
        monkeypatch.setenv("ROLLBACK_PULUMI_COMMAND_TIMEOUT", "45")

        config = load_config(path="/nonexistent/rollback.json")
        assert config.pulumi.command_timeout == 45

    def test_env_non_numeric_int_raises(self, monkeypatch):
        monkeypatch.setenv("ROLLBACK_PULUMI_COMMAND_TIMEOUT", "5m")

        with pytest.raises(ValueError, match="command_timeout must be an integer"):
            load_config(path="/nonexistent/rollback.json")

    def test_env_key_without_field_is_ignored(self, monkeypatch):
        monkeypatch.setenv("ROLLBACK_STACK", "dev")

        config = load_config(path="/nonexistent/rollback.json")
        assert config.stack.name == ""
        assert config.stack.project_path == "."

    def test_env_multi_word_field(self, monkeypatch):
        monkeypatch.setenv("ROLLBACK_PULUMI_BACKEND_URL", "file:///var/state")

        config = load_config(path="/nonexistent/rollback.json")
        assert config.pulumi.backend_url == "file:///var/state"

    def test_env_top_level_keys(self, monkeypatch):
        monkeypatch.setenv("ROLLBACK_LOG_LEVEL", "INFO")
        monkeypatch.setenv("ROLLBACK_LOG_FORMAT", "json")

        config = load_config(path="/nonexistent/rollback.json")
        assert config.log_level == "INFO"
        assert config.log_format == "json"

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("MYAPP_STACK_NAME", "custom")

        config = load_config(path="/nonexistent/rollback.json", env_prefix="MYAPP")
        assert config.stack.name == "custom"


class TestPulumiStackFallback:
    def test_pulumi_stack_used_when_unset(self, monkeypatch):
        monkeypatch.setenv("PULUMI_STACK", "from-pulumi")

        config = load_config(path="/nonexistent/rollback.json")
        assert config.stack.name == "from-pulumi"

    def test_explicit_name_wins(self, monkeypatch):
        monkeypatch.setenv("PULUMI_STACK", "from-pulumi")
        monkeypatch.setenv("ROLLBACK_STACK_NAME", "explicit")

        config = load_config(path="/nonexistent/rollback.json")
        assert config.stack.name == "explicit"
