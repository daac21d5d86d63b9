"""Plugin system for the proxy.

Plugins are git-hosted directories holding a ``plugin.json`` manifest and a
Python entry file exposing ``get_tools()`` and ``execute_tool()``. They are:

1. Installed from ``@owner/repo[/subpath]`` specs into ~/.copilot/plugins
2. Recorded in plugins.json with an enabled flag
3. Loaded in-process; their tools are exposed as ``<namespace>_<tool>``
"""

from .installer import GitSourceFetcher, PluginInstaller, SourceFetcher
from .loader import LoadedPlugin, load_plugin, text_result
from .models import Plugin, PluginManifest, PluginRecord, PluginSpec, parse_plugin_spec
from .registry import PluginRegistry
from .storage import PLUGINS_DIR, PluginStore, ensure_plugins_dir

__all__ = [
    # Models
    "Plugin",
    "PluginManifest",
    "PluginRecord",
    "PluginSpec",
    "parse_plugin_spec",
    # Loader
    "LoadedPlugin",
    "load_plugin",
    "text_result",
    # Installer
    "SourceFetcher",
    "GitSourceFetcher",
    "PluginInstaller",
    # Storage
    "PLUGINS_DIR",
    "PluginStore",
    "ensure_plugins_dir",
    # Registry
    "PluginRegistry",
]
