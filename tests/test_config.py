"""Test configuration management."""

import json

from content_admin.config import (
    CONFIG_FILE_NAME,
    ConfigManager,
    ContentAdminConfig,
    deep_merge,
    validate_project,
)


class TestContentAdminConfig:
    def test_defaults(self, tmp_path):
        config = ContentAdminConfig(project_root=tmp_path)

        assert config.env == "development"
        assert config.content_path == tmp_path / "src" / "content"
        assert config.stage_path == tmp_path / ".content-admin" / "cache"
        assert config.schema_candidate_paths[0] == tmp_path / "src" / "content" / "config.py"
        assert len(config.schema_candidate_paths) == 4
        assert config.schemas.virtual_module == "site_content"
        assert config.schemas.validation_module == "pydantic"
        assert config.watch_debounce_ms == 500

    def test_debounce_outside_development(self, tmp_path):
        assert ContentAdminConfig(project_root=tmp_path, env="production").watch_debounce_ms == 2000
        explicit = ContentAdminConfig(project_root=tmp_path, watcher={"debounce_ms": 100})
        assert explicit.watch_debounce_ms == 100

    def test_relative_directories_resolve_under_root(self, tmp_path):
        config = ContentAdminConfig(project_root=tmp_path, content_dir="site/content", cache_dir="/tmp/stage")

        assert config.content_path == tmp_path / "site" / "content"
        assert str(config.stage_path) == "/tmp/stage"

    def test_environment_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONTENT_ADMIN_ENV", "production")
        monkeypatch.setenv("CONTENT_ADMIN_WATCHER__DEBOUNCE_MS", "250")
        monkeypatch.setenv("CONTENT_ADMIN_SCHEMAS__VIRTUAL_MODULE", "astro_content")

        config = ContentAdminConfig(project_root=tmp_path)

        assert config.env == "production"
        assert config.watch_debounce_ms == 250
        assert config.schemas.virtual_module == "astro_content"


class TestDeepMerge:
    def test_nested_mappings_merge(self):
        base = {"schemas": {"virtual_module": "a", "external_modules": ["x"]}, "env": "test"}
        result = deep_merge(base, {"schemas": {"virtual_module": "b"}})

        assert result == {"schemas": {"virtual_module": "b", "external_modules": ["x"]}, "env": "test"}
        assert base["schemas"]["virtual_module"] == "a"

    def test_none_ignored_and_lists_replaced(self):
        result = deep_merge({"a": [1, 2], "b": 1}, {"a": [3], "b": None})

        assert result == {"a": [3], "b": 1}


class TestConfigManager:
    def test_without_config_file(self, tmp_path):
        config = ConfigManager(tmp_path).load_config()

        assert config.project_root == tmp_path.resolve()
        assert config.watcher.enabled is True

    def test_config_file_overrides_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILE_NAME).write_text(
            json.dumps({"content_dir": "content", "watcher": {"enabled": False}})
        )

        config = ConfigManager(tmp_path).load_config()

        assert config.content_path == tmp_path.resolve() / "content"
        assert config.watcher.enabled is False
        assert config.watcher.debounce_ms is None

    def test_overrides_beat_file_and_environment_beats_both(self, tmp_path, monkeypatch):
        (tmp_path / CONFIG_FILE_NAME).write_text(json.dumps({"env": "test", "log_level": "DEBUG"}))
        monkeypatch.setenv("CONTENT_ADMIN_LOG_LEVEL", "WARNING")

        config = ConfigManager(tmp_path).load_config(env="production")

        assert config.env == "production"
        assert config.log_level == "WARNING"

    def test_invalid_config_file_ignored(self, tmp_path, log_messages):
        (tmp_path / CONFIG_FILE_NAME).write_text("{not json")

        config = ConfigManager(tmp_path).load_config()

        assert config.env == "development"
        assert any("Ignoring unreadable" in m for m in log_messages)

    def test_project_root_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONTENT_ADMIN_PROJECT_ROOT", str(tmp_path))

        assert ConfigManager().project_root == tmp_path.resolve()


class TestValidateProject:
    def test_valid_project(self, config):
        result = validate_project(config)

        assert result.valid
        assert result.problems == []

    def test_missing_pieces(self, tmp_path):
        result = validate_project(ContentAdminConfig(project_root=tmp_path))

        assert not result.valid
        messages = [p.message for p in result.problems]
        assert any("Missing content directory" in m for m in messages)
        assert any("No schema-definition file found" in m for m in messages)
        assert all(p.hint for p in result.problems)

    def test_missing_root(self, tmp_path):
        result = validate_project(ContentAdminConfig(project_root=tmp_path / "nope"))

        assert len(result.problems) == 1
        assert "does not exist" in result.problems[0].message
