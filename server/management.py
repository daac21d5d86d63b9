"""Locally answered plugin management tools.

These six tools are always part of the catalog. They manipulate the plugin
store and registry directly and reload plugins after every successful
lifecycle change, so the next tools/list reflects it.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from core.exceptions import NotFoundError, ValidationError
from core.models import ToolDescriptor, ToolResult
from plugins import PluginRegistry

logger = logging.getLogger(__name__)


def _name_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"name": {"type": "string", "description": "Plugin name"}},
        "required": ["name"],
    }


MANAGEMENT_TOOLS: list[ToolDescriptor] = [
    ToolDescriptor(
        name="plugin_list",
        description="List installed Copilot CLI plugins",
        input_schema={"type": "object", "properties": {}},
    ),
    ToolDescriptor(
        name="plugin_install",
        description="Install plugin from GitHub (@owner/repo)",
        input_schema={
            "type": "object",
            "properties": {
                "spec": {
                    "type": "string",
                    "description": "Plugin spec: @owner/repo or @owner/repo/subpath",
                }
            },
            "required": ["spec"],
        },
    ),
    ToolDescriptor(
        name="plugin_uninstall",
        description="Uninstall a plugin",
        input_schema=_name_schema(),
    ),
    ToolDescriptor(
        name="plugin_enable",
        description="Enable a disabled plugin",
        input_schema=_name_schema(),
    ),
    ToolDescriptor(
        name="plugin_disable",
        description="Disable an enabled plugin",
        input_schema=_name_schema(),
    ),
    ToolDescriptor(
        name="plugin_info",
        description="Get detailed info about a plugin",
        input_schema=_name_schema(),
    ),
]

MANAGEMENT_TOOL_NAMES = frozenset(tool.name for tool in MANAGEMENT_TOOLS)


def _require_str(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required argument: {key}")
    return value.strip()


class ManagementTools:
    """Executes the plugin_* management tools against a PluginRegistry."""

    def __init__(self, registry: PluginRegistry):
        self.registry = registry

    def list_tools(self) -> list[ToolDescriptor]:
        return list(MANAGEMENT_TOOLS)

    def handles(self, name: str) -> bool:
        return name in MANAGEMENT_TOOL_NAMES

    async def call(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Run a management tool.

        Raises:
            NotFoundError: For unknown tool names or plugins
            ValidationError: For missing arguments or malformed specs
        """
        arguments = arguments or {}
        logger.info("Management tool: %s", name)

        if name == "plugin_list":
            return self._list()
        if name == "plugin_install":
            return await self._install(_require_str(arguments, "spec"))
        if name == "plugin_uninstall":
            plugin = _require_str(arguments, "name")
            self.registry.uninstall(plugin)
            self.registry.load_all()
            return ToolResult.from_text(f"✅ Uninstalled plugin: {plugin}")
        if name == "plugin_enable":
            plugin = _require_str(arguments, "name")
            self.registry.enable(plugin)
            self.registry.load_all()
            return ToolResult.from_text(f"✅ Enabled plugin: {plugin}")
        if name == "plugin_disable":
            plugin = _require_str(arguments, "name")
            self.registry.disable(plugin)
            self.registry.load_all()
            return ToolResult.from_text(f"✅ Disabled plugin: {plugin}")
        if name == "plugin_info":
            return self._info(_require_str(arguments, "name"))

        raise NotFoundError("Management tool", name)

    def _list(self) -> ToolResult:
        plugins = [
            {
                "name": record.name,
                **record.to_document(),
                "loaded": self.registry.is_loaded(record.name),
            }
            for record in self.registry.list_plugins()
        ]
        return ToolResult.from_text(json.dumps(plugins, indent=2))

    async def _install(self, spec: str) -> ToolResult:
        record = await self.registry.install(spec)
        self.registry.load_all()
        description = record.manifest.get("description") or "No description"
        lines = [
            f"✅ Installed plugin: {record.name}",
            f"Version: {record.version}",
            description,
        ]
        if record.enabled and not self.registry.is_loaded(record.name):
            lines.append("⚠️ Plugin is installed but failed to load; see the proxy log")
        return ToolResult.from_text("\n".join(lines))

    def _info(self, name: str) -> ToolResult:
        record, readme = self.registry.info(name)
        info: dict[str, Any] = {
            "name": record.name,
            **record.to_document(),
            "loaded": self.registry.is_loaded(name),
        }
        if readme is not None:
            info["readme"] = readme
        return ToolResult.from_text(json.dumps(info, indent=2))
