"""
Tests for the configuration system.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import (
    BackendConfig,
    ConfigError,
    ProxyConfig,
    TimeoutsConfig,
    env_overrides,
    load_config,
    merge_configs,
    strip_jsonc_comments,
)
from config import loader as config_loader
from config.defaults import DEFAULT_BACKEND_ARGS


@pytest.fixture(autouse=True)
def no_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config at a file that does not exist yet."""
    path = tmp_path / "home" / "mcp-proxy.jsonc"
    monkeypatch.setattr(config_loader, "GLOBAL_CONFIG_PATH", path)
    return path


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
        assert "/*" not in result
        assert json.loads(result) == {"key": "value"}

    def test_comment_markers_inside_strings(self):
        """URLs and globs in string values survive."""
        jsonc = """
        {
            "url": "https://example.com/a", // trailing
            "glob": "src/*/x /* not a comment */"
        }
        """
        data = json.loads(strip_jsonc_comments(jsonc))
        assert data == {"url": "https://example.com/a", "glob": "src/*/x /* not a comment */"}

    def test_escaped_quote_in_string(self):
        jsonc = '{"a": "say \\"hi\\" // still text"}'
        assert json.loads(strip_jsonc_comments(jsonc)) == {"a": 'say "hi" // still text'}


class TestConfigModels:
    """Test Pydantic config models."""

    def test_defaults(self):
        config = ProxyConfig()
        assert config.backend.args == DEFAULT_BACKEND_ARGS
        assert config.backend.command.endswith("github-mcp-server")
        assert config.plugins.install_dependencies is True
        assert config.log_level == "INFO"

    def test_argv(self):
        backend = BackendConfig(command="/bin/server", args=["stdio"])
        assert backend.argv == ["/bin/server", "stdio"]

    def test_log_level_normalized(self):
        assert ProxyConfig(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            ProxyConfig(log_level="chatty")

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            TimeoutsConfig(call=0)


class TestMergeConfigs:
    """Test deep merging."""

    def test_nested_merge(self):
        base = {"backend": {"command": "a", "args": ["x"]}, "log_level": "INFO"}
        override = {"backend": {"command": "b"}}

        merged = merge_configs(base, override)

        assert merged == {"backend": {"command": "b", "args": ["x"]}, "log_level": "INFO"}
        assert base["backend"]["command"] == "a"

    def test_lists_replaced(self):
        merged = merge_configs({"backend": {"args": ["a", "b"]}}, {"backend": {"args": []}})
        assert merged["backend"]["args"] == []


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_empty(self):
        assert env_overrides({}) == {}

    def test_all_variables(self):
        overrides = env_overrides(
            {"MCP_BACKEND_PATH": "/opt/server", "MCP_PLUGIN_DIR": "/tmp/plugins", "LOG_LEVEL": "debug"}
        )
        assert overrides == {
            "backend": {"command": "/opt/server"},
            "plugins": {"directory": "/tmp/plugins"},
            "log_level": "debug",
        }

    def test_legacy_backend_variable(self):
        assert env_overrides({"GITHUB_MCP_PATH": "/legacy"}) == {"backend": {"command": "/legacy"}}

    def test_new_variable_wins(self):
        overrides = env_overrides({"GITHUB_MCP_PATH": "/legacy", "MCP_BACKEND_PATH": "/new"})
        assert overrides["backend"]["command"] == "/new"


class TestLoadConfig:
    """Test load_config precedence."""

    def test_no_files(self, tmp_path: Path):
        config = load_config(project_root=tmp_path, environ={})
        assert config == ProxyConfig()

    def test_project_jsonc(self, tmp_path: Path):
        (tmp_path / "mcp-proxy.jsonc").write_text(
            '{\n  // local backend\n  "backend": {"command": "/srv/mcp", "args": ["stdio"]}\n}\n'
        )

        config = load_config(project_root=tmp_path, environ={})

        assert config.backend.argv == ["/srv/mcp", "stdio"]

    def test_project_overrides_global(self, tmp_path: Path, no_global_config: Path):
        no_global_config.parent.mkdir(parents=True)
        no_global_config.write_text('{"log_level": "ERROR", "plugins": {"git_base_url": "https://git.example"}}')
        (tmp_path / "mcp-proxy.json").write_text('{"log_level": "WARNING"}')

        config = load_config(project_root=tmp_path, environ={})

        assert config.log_level == "WARNING"
        assert config.plugins.git_base_url == "https://git.example"

    def test_env_overrides_files(self, tmp_path: Path):
        (tmp_path / "mcp-proxy.json").write_text('{"backend": {"command": "/from/file"}}')

        config = load_config(
            project_root=tmp_path,
            environ={"MCP_BACKEND_PATH": "/from/env", "MCP_PLUGIN_DIR": str(tmp_path / "p")},
        )

        assert config.backend.command == "/from/env"
        assert config.plugins.directory == tmp_path / "p"

    def test_explicit_path_replaces_project_lookup(self, tmp_path: Path):
        (tmp_path / "mcp-proxy.json").write_text('{"log_level": "WARNING"}')
        explicit = tmp_path / "custom.json"
        explicit.write_text('{"log_level": "DEBUG"}')

        config = load_config(project_root=tmp_path, config_path=explicit, environ={})

        assert config.log_level == "DEBUG"

    def test_explicit_path_missing(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config(project_root=tmp_path, config_path=tmp_path / "absent.json", environ={})

    def test_invalid_project_file_ignored(self, tmp_path: Path):
        (tmp_path / "mcp-proxy.json").write_text("[1, 2]")

        config = load_config(project_root=tmp_path, environ={})

        assert config == ProxyConfig()
