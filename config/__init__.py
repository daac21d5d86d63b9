"""
Configuration module for the proxy.

Exports the configuration models and the loader used by main.py.
"""

from .analytics_config import AnalyticsConfig
from .backend_config import BackendConfig
from .defaults import DEFAULT_PLUGINS_DIR, GLOBAL_CONFIG_PATH
from .loader import (
    ConfigError,
    env_overrides,
    load_config,
    load_config_file,
    merge_configs,
    strip_jsonc_comments,
)
from .main_config import ProxyConfig
from .plugins_config import PluginsConfig
from .timeouts_config import TimeoutsConfig

__all__ = [
    # Constants
    "DEFAULT_PLUGINS_DIR",
    "GLOBAL_CONFIG_PATH",
    # Config models
    "ProxyConfig",
    "BackendConfig",
    "PluginsConfig",
    "TimeoutsConfig",
    "AnalyticsConfig",
    # Loader functions
    "ConfigError",
    "load_config",
    "load_config_file",
    "merge_configs",
    "env_overrides",
    "strip_jsonc_comments",
]
