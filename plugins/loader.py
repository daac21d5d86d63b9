"""Plugin loader for loading plugin entry points from Python files.

Provides functionality to dynamically load an installed plugin's entry file
(``plugin.py`` by default) and check that it provides the plugin capability
set: ``get_tools()`` and ``execute_tool(name, arguments)``.
"""

from __future__ import annotations

import inspect
import logging
import random
import sys
import types
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.constants import PLUGIN_PACKAGES_DIR, PLUGIN_TOOL_SEPARATOR
from core.exceptions import PluginLoadError
from core.models import ToolDescriptor, ToolResult, coerce_tool_result

from .models import Plugin, PluginRecord

logger = logging.getLogger(__name__)

REQUIRED_CAPABILITIES = ("get_tools", "execute_tool")


def text_result(text: str, is_error: bool = False) -> dict[str, Any]:
    """Helper injected into plugin modules for building tool results."""
    return ToolResult.from_text(text, is_error=is_error).to_wire()


@dataclass
class LoadedPlugin:
    """A plugin loaded from its entry file.

    Attributes:
        record: The persisted record this plugin was loaded from
        path: Path to the entry file
        module: The executed module object
        namespace: Prefix qualifying this plugin's tool names
    """

    record: PluginRecord
    path: Path
    module: types.ModuleType
    namespace: str = ""

    def __post_init__(self):
        if not self.namespace:
            self.namespace = self.record.namespace

    @property
    def name(self) -> str:
        return self.record.name

    def list_tools(self) -> list[ToolDescriptor]:
        """Return this plugin's tools with qualified names.

        Raises:
            Whatever the plugin's get_tools raises
        """
        tools = []
        for raw in self.module.get_tools() or []:
            tool = ToolDescriptor.model_validate(raw)
            tools.append(
                tool.model_copy(
                    update={
                        "name": f"{self.namespace}{PLUGIN_TOOL_SEPARATOR}{tool.name}",
                        "plugin": self.name,
                    }
                )
            )
        return tools

    def prefixes(self) -> list[str]:
        """Name prefixes this plugin answers to, longest first."""
        candidates = {self.name, self.namespace}
        return sorted(
            (f"{c}{PLUGIN_TOOL_SEPARATOR}" for c in candidates),
            key=len,
            reverse=True,
        )

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run an (unqualified) tool, handling both sync and async plugins."""
        result = self.module.execute_tool(tool_name, arguments)
        if inspect.isawaitable(result):
            result = await result
        return coerce_tool_result(result)


def load_plugin(record: PluginRecord, plugin_dir: Path) -> LoadedPlugin:
    """Load an installed plugin's entry file.

    The entry file should define:
        def get_tools():
            return [{"name": "hello", "description": "...", "inputSchema": {...}}]

        async def execute_tool(name, arguments):
            return text_result(f"hello {arguments.get('who')}")

    ``text_result`` and ``ToolDescriptor`` are available in the module
    namespace without importing them.

    Tools are listed to clients as ``<namespace>_<name>``, but
    ``execute_tool`` receives the name exactly as ``get_tools`` returned it
    (``hello`` above, not ``acme-greeter_hello``).

    Args:
        record: The plugin's persisted record
        plugin_dir: Directory the plugin was installed into

    Returns:
        LoadedPlugin wrapping the executed module

    Raises:
        PluginLoadError: If the entry file is missing, fails to execute, or
            lacks one of the required capabilities
    """
    entry_path = plugin_dir / record.entry
    if not entry_path.is_file():
        raise PluginLoadError(f"Plugin {record.name}: entry file not found: {entry_path}")

    packages_dir = plugin_dir / PLUGIN_PACKAGES_DIR
    if packages_dir.is_dir() and str(packages_dir) not in sys.path:
        sys.path.insert(0, str(packages_dir))

    # Read source directly to bypass import caching
    source = entry_path.read_text()

    # Create a unique module name to avoid conflicts
    random_suffix = random.randint(0, 2**32)
    module_name = f"plugin_{record.name.replace('-', '_')}_{random_suffix}"

    module = types.ModuleType(module_name)
    module.__file__ = str(entry_path)
    module.text_result = text_result
    module.ToolDescriptor = ToolDescriptor

    # Add to sys.modules temporarily for imports within the plugin
    sys.modules[module_name] = module

    try:
        code = compile(source, str(entry_path), "exec")
        exec(code, module.__dict__)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise PluginLoadError(f"Failed to execute plugin {record.name}: {e}") from e

    if not isinstance(module, Plugin):
        missing = [
            capability
            for capability in REQUIRED_CAPABILITIES
            if not callable(getattr(module, capability, None))
        ]
        sys.modules.pop(module_name, None)
        raise PluginLoadError(
            f"Plugin {record.name} does not define {', '.join(missing)}"
        )

    logger.debug("Loaded plugin '%s' from %s", record.name, entry_path)

    return LoadedPlugin(
        record=record,
        path=entry_path,
        module=module,
    )
