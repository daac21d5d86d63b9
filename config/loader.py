"""Configuration loading utilities."""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

from .defaults import (
    ENV_BACKEND_PATH,
    ENV_BACKEND_PATH_LEGACY,
    ENV_LOG_LEVEL,
    ENV_PLUGIN_DIR,
    GLOBAL_CONFIG_PATH,
    PROJECT_CONFIG_FILENAMES,
)
from .main_config import ProxyConfig

logger = logging.getLogger(__name__)

# Strings are matched first so comment markers inside them (URLs) survive.
_JSONC_TOKEN = re.compile(
    r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*.*?\*/)',
    re.DOTALL,
)


class ConfigError(Exception):
    """Raised when an explicitly requested config file cannot be used."""


def strip_jsonc_comments(content: str) -> str:
    """
    Strip comments from JSONC content to convert to valid JSON.

    Handles:
    - Single-line comments: // comment
    - Multi-line comments: /* comment */

    Comment markers inside string literals are left alone.

    Args:
        content: JSONC content string

    Returns:
        JSON string with comments removed
    """
    return _JSONC_TOKEN.sub(lambda m: m.group(1) or "", content)


def load_config_file(path: Path) -> dict[str, Any] | None:
    """
    Load a config file from the given path.

    Supports both .json and .jsonc files with comment stripping.

    Args:
        path: Path to the config file

    Returns:
        Parsed config dictionary or None if file doesn't exist or is invalid
    """
    if not path.exists():
        return None

    try:
        content = path.read_text()
        if path.suffix == ".jsonc":
            content = strip_jsonc_comments(content)
        data = json.loads(content)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load config from %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level must be an object", path)
        return None
    return data


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Args:
        base: Base configuration
        override: Override configuration (takes precedence)

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Build a config fragment from environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Partial configuration dictionary
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    backend_path = environ.get(ENV_BACKEND_PATH) or environ.get(ENV_BACKEND_PATH_LEGACY)
    if backend_path:
        overrides["backend"] = {"command": backend_path}
    if environ.get(ENV_PLUGIN_DIR):
        overrides["plugins"] = {"directory": environ[ENV_PLUGIN_DIR]}
    if environ.get(ENV_LOG_LEVEL):
        overrides["log_level"] = environ[ENV_LOG_LEVEL]

    return overrides


def load_config(
    project_root: Path | None = None,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ProxyConfig:
    """
    Load configuration from multiple sources with precedence.

    Sources, lowest precedence first:
    1. Global: ~/.copilot/mcp-proxy.jsonc
    2. Project-level: mcp-proxy.jsonc or mcp-proxy.json (first found), or
       config_path when given
    3. Environment: MCP_BACKEND_PATH, MCP_PLUGIN_DIR, LOG_LEVEL

    Args:
        project_root: Project root directory (defaults to current working directory)
        config_path: Explicit config file replacing the project-level lookup
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Loaded and merged ProxyConfig model

    Raises:
        ConfigError: If config_path is given but missing or unreadable
    """
    if project_root is None:
        project_root = Path.cwd()

    config_data = load_config_file(GLOBAL_CONFIG_PATH) or {}

    if config_path is not None:
        explicit = load_config_file(config_path)
        if explicit is None:
            raise ConfigError(f"Config file not found or invalid: {config_path}")
        config_data = merge_configs(config_data, explicit)
    else:
        for filename in PROJECT_CONFIG_FILENAMES:
            project_config = load_config_file(project_root / filename)
            if project_config:
                logger.debug("Using project config %s", project_root / filename)
                config_data = merge_configs(config_data, project_config)
                break

    config_data = merge_configs(config_data, env_overrides(environ))

    return ProxyConfig(**config_data)
