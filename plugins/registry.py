"""Plugin registry for installing, loading and routing to plugins.

The registry ties the persisted records (PluginStore), the on-disk installer
and the in-memory loaded set together. Lifecycle changes only touch the
store; ``load_all()`` rebuilds the loaded set from the enabled records.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from core.constants import PLUGIN_TOOL_SEPARATOR
from core.exceptions import NotFoundError, PartialLoadError
from core.models import ToolDescriptor, ToolResult

from .installer import PluginInstaller
from .loader import LoadedPlugin, load_plugin
from .models import PluginRecord
from .storage import PluginStore

logger = logging.getLogger(__name__)

README_NAMES = ("README.md", "README.rst", "README.txt", "README")


class PluginRegistry:
    """Manages installed plugins and the set currently loaded.

    Attributes:
        store: Persisted plugin records
        installer: Performs install/uninstall on disk
    """

    def __init__(self, store: PluginStore, installer: PluginInstaller | None = None):
        """Initialize the registry.

        Args:
            store: Plugin record store
            installer: Installer; defaults to one sharing the same store
        """
        self.store = store
        self.installer = installer or PluginInstaller(store)
        self._loaded: dict[str, LoadedPlugin] = {}

    @property
    def loaded_names(self) -> list[str]:
        return list(self._loaded)

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    def get_loaded(self, name: str) -> Optional[LoadedPlugin]:
        return self._loaded.get(name)

    # Lifecycle

    async def install(self, spec: str) -> PluginRecord:
        """Install a plugin. Not loaded until the next load_all()."""
        return await self.installer.install(spec)

    def uninstall(self, name: str) -> PluginRecord:
        """Remove a plugin's files and record.

        Raises:
            NotFoundError: If the plugin is not installed
        """
        return self.installer.uninstall(name)

    def enable(self, name: str) -> PluginRecord:
        return self.store.set_enabled(name, True)

    def disable(self, name: str) -> PluginRecord:
        return self.store.set_enabled(name, False)

    def list_plugins(self) -> list[PluginRecord]:
        return self.store.list_records()

    def info(self, name: str) -> tuple[PluginRecord, Optional[str]]:
        """Return a plugin's record and README text, if it ships one.

        Raises:
            NotFoundError: If the plugin is not installed
        """
        record = self.store.require(name)
        plugin_dir = self.store.plugin_path(name)
        for candidate in README_NAMES:
            readme = plugin_dir / candidate
            if readme.is_file():
                try:
                    return record, readme.read_text(errors="replace")
                except OSError as e:
                    logger.warning("Failed to read %s: %s", readme, e)
                    break
        return record, None

    # Loading

    def load_all(self) -> int:
        """Rebuild the loaded set from scratch from enabled records.

        A plugin that fails to load is logged and skipped; the others still
        load.

        Returns:
            Number of plugins loaded
        """
        self.clear()
        for record in self.store.list_records():
            if not record.enabled:
                continue
            try:
                plugin = load_plugin(record, self.store.plugin_path(record.name))
            except PartialLoadError as e:
                logger.error("Skipping plugin '%s': %s", record.name, e)
                continue
            self._loaded[record.name] = plugin
            logger.info("Loaded plugin '%s' v%s", record.name, record.version)

        logger.info("%d plugin(s) loaded", len(self._loaded))
        return len(self._loaded)

    def clear(self) -> int:
        """Drop every loaded plugin and its module.

        Returns:
            Number of plugins dropped
        """
        count = len(self._loaded)
        for plugin in self._loaded.values():
            sys.modules.pop(plugin.module.__name__, None)
        self._loaded.clear()
        return count

    # Tools

    def list_tools(self) -> list[ToolDescriptor]:
        """Qualified tools of every loaded plugin, in load order."""
        tools: list[ToolDescriptor] = []
        for plugin in self._loaded.values():
            try:
                tools.extend(plugin.list_tools())
            except Exception as e:
                logger.warning("Plugin '%s' failed to list tools: %s", plugin.name, e)
        return tools

    def owns_tool(self, name: str) -> bool:
        """Whether a loaded plugin currently lists a tool with this exact name."""
        return name in self._routes()

    async def invoke_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run a qualified plugin tool.

        Raises:
            NotFoundError: If no loaded plugin owns the name
        """
        resolved = self._routes().get(name) or self._resolve(name)
        if resolved is None:
            raise NotFoundError("Plugin tool", name)
        plugin, tool_name = resolved
        logger.debug("Invoking %s on plugin '%s'", tool_name, plugin.name)
        return await plugin.invoke(tool_name, arguments or {})

    def _routes(self) -> dict[str, tuple[LoadedPlugin, str]]:
        """Map each listed qualified name to its plugin and unqualified name.

        The first plugin in load order listing a name keeps it.
        """
        routes: dict[str, tuple[LoadedPlugin, str]] = {}
        for tool in self.list_tools():
            plugin = self._loaded.get(tool.plugin or "")
            if plugin is None:
                continue
            prefix = f"{plugin.namespace}{PLUGIN_TOOL_SEPARATOR}"
            routes.setdefault(tool.name, (plugin, tool.name[len(prefix):]))
        return routes

    def _resolve(self, name: str) -> Optional[tuple[LoadedPlugin, str]]:
        # Fallback for names not in the current listing. Longest prefix wins
        # so "acme-tools_x" is not captured by "acme_".
        best: Optional[tuple[LoadedPlugin, str]] = None
        best_len = 0
        for plugin in self._loaded.values():
            for prefix in plugin.prefixes():
                if name.startswith(prefix) and len(name) > len(prefix) and len(prefix) > best_len:
                    best = (plugin, name[len(prefix):])
                    best_len = len(prefix)
        return best
