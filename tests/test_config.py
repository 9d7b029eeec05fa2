"""
Tests for the configuration system.
"""

import json
from pathlib import Path

import pytest

from config import (
    Config,
    ServerConfig,
    SessionConfig,
    StorageConfig,
    get_config,
    load_config,
    merge_configs,
    strip_jsonc_comments,
)
from config.defaults import DEFAULT_MODEL


@pytest.fixture
def clean_env(monkeypatch):
    """Remove server environment overrides."""
    for name in ("CORS_ORIGINS", "HOST", "PORT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def home_dir(temp_dir: Path) -> Path:
    home = temp_dir / "home"
    home.mkdir()
    return home


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    project = temp_dir / "project"
    project.mkdir()
    return project


class TestStripJSONComments:
    """Test JSONC comment stripping."""

    def test_single_line_comments(self):
        """Test that single-line comments are stripped."""
        jsonc = """
        {
            // This is a comment
            "key": "value"
        }
        """
        result = strip_jsonc_comments(jsonc)
        assert "//" not in result
        assert json.loads(result) == {"key": "value"}

    def test_multi_line_comments(self):
        """Test that multi-line comments are stripped."""
        jsonc = """
        {
            /* This is a
               multi-line comment */
            "key": "value"
        }
        """
        result = strip_jsonc_comments(jsonc)
        assert json.loads(result) == {"key": "value"}

    def test_comment_markers_inside_strings_survive(self):
        """URLs and glob patterns inside strings are not comments."""
        jsonc = '{"url": "https://example.com/a", "glob": "src/*/x"} // trailing'
        result = strip_jsonc_comments(jsonc)
        assert json.loads(result) == {"url": "https://example.com/a", "glob": "src/*/x"}


class TestConfigModels:
    """Test Pydantic config models."""

    def test_session_config_defaults(self):
        sessions = SessionConfig()
        assert sessions.model == DEFAULT_MODEL
        assert sessions.allowed_tools == ["Read"]
        assert sessions.thinking_level == "default_on"
        assert sessions.report_mode is False

    def test_server_config_defaults(self):
        server = ServerConfig()
        assert server.port == 8000
        assert server.cors_origins == ["*"]

    def test_storage_config_defaults(self):
        storage = StorageConfig()
        assert storage.transcripts_dir.endswith("transcripts")
        assert storage.branches_dir is not None

    def test_config_defaults(self):
        config = Config()
        assert isinstance(config.sessions, SessionConfig)
        assert isinstance(config.server, ServerConfig)
        assert isinstance(config.storage, StorageConfig)


class TestMergeConfigs:
    def test_nested_merge(self):
        base = {"sessions": {"model": "a", "max_turns": 3}, "server": {"port": 1}}
        override = {"sessions": {"model": "b"}}
        assert merge_configs(base, override) == {
            "sessions": {"model": "b", "max_turns": 3},
            "server": {"port": 1},
        }

    def test_base_is_not_modified(self):
        base = {"sessions": {"model": "a"}}
        merge_configs(base, {"sessions": {"model": "b"}})
        assert base == {"sessions": {"model": "a"}}


class TestConfigLoading:
    """Test configuration file loading."""

    def test_load_empty_config(self, project_dir, home_dir, clean_env):
        """Test loading with no config file."""
        config = load_config(project_dir, home=home_dir)
        assert config == Config()

    def test_load_json_config(self, project_dir, home_dir, clean_env):
        (project_dir / "worldline.json").write_text(
            json.dumps({"sessions": {"model": "claude-opus-4-1", "report_mode": True}})
        )

        config = load_config(project_dir, home=home_dir)
        assert config.sessions.model == "claude-opus-4-1"
        assert config.sessions.report_mode is True

    def test_load_jsonc_config(self, project_dir, home_dir, clean_env):
        (project_dir / "worldline.jsonc").write_text(
            """
            {
                // Sessions
                "sessions": {
                    "max_turns": 7 /* per query */
                },
                "storage": {"branches_dir": null}
            }
            """
        )

        config = load_config(project_dir, home=home_dir)
        assert config.sessions.max_turns == 7
        assert config.storage.branches_dir is None

    def test_config_file_precedence(self, project_dir, home_dir, clean_env):
        """worldline.jsonc wins over worldline.json."""
        (project_dir / "worldline.json").write_text(json.dumps({"sessions": {"model": "json"}}))
        (project_dir / "worldline.jsonc").write_text(json.dumps({"sessions": {"model": "jsonc"}}))

        config = load_config(project_dir, home=home_dir)
        assert config.sessions.model == "jsonc"

    def test_project_merges_over_global(self, project_dir, home_dir, clean_env):
        global_dir = home_dir / ".worldline"
        global_dir.mkdir()
        (global_dir / "worldline.jsonc").write_text(
            json.dumps({"sessions": {"model": "global", "max_turns": 9}})
        )
        (project_dir / "worldline.json").write_text(json.dumps({"sessions": {"model": "project"}}))

        config = load_config(project_dir, home=home_dir)
        assert config.sessions.model == "project"
        assert config.sessions.max_turns == 9

    def test_invalid_file_is_ignored(self, project_dir, home_dir, clean_env):
        (project_dir / "worldline.json").write_text("{broken")
        config = load_config(project_dir, home=home_dir)
        assert config == Config()

    def test_environment_overrides_server(self, project_dir, home_dir, clean_env):
        clean_env.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        clean_env.setenv("PORT", "9001")

        config = load_config(project_dir, home=home_dir)
        assert config.server.cors_origins == ["https://a.example", "https://b.example"]
        assert config.server.port == 9001


class TestConfigCache:
    """Test configuration caching."""

    def test_cache_returns_same_instance(self):
        """Test that get_config returns cached instance."""
        get_config.cache_clear()

        config1 = get_config()
        config2 = get_config()

        assert config1 is config2

    def test_cache_clear(self):
        """Test that cache can be cleared."""
        get_config.cache_clear()
        config1 = get_config()
        get_config.cache_clear()
        config2 = get_config()

        assert config1 == config2
