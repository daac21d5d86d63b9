"""Default configuration values."""

from pathlib import Path

DEFAULT_BACKEND_COMMAND = str(Path.home() / "github-mcp-server" / "github-mcp-server")
DEFAULT_BACKEND_ARGS = ["stdio", "--toolsets=default"]

DEFAULT_PLUGINS_DIR = Path.home() / ".copilot" / "plugins"
DEFAULT_GIT_BASE_URL = "https://github.com"

DEFAULT_ANALYTICS_PATH = Path.home() / ".copilot" / "token-analytics.jsonl"

DEFAULT_LOG_LEVEL = "INFO"

# Config file locations, lowest precedence first
GLOBAL_CONFIG_PATH = Path.home() / ".copilot" / "mcp-proxy.jsonc"
PROJECT_CONFIG_FILENAMES = ["mcp-proxy.jsonc", "mcp-proxy.json"]

# Environment overrides
ENV_BACKEND_PATH = "MCP_BACKEND_PATH"
ENV_BACKEND_PATH_LEGACY = "GITHUB_MCP_PATH"  # Honored when MCP_BACKEND_PATH is unset
ENV_PLUGIN_DIR = "MCP_PLUGIN_DIR"
ENV_LOG_LEVEL = "LOG_LEVEL"
