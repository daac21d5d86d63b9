"""Plugin models for the plugin system.

Defines the core data structures used by plugins:
- PluginSpec: A parsed install spec (@owner/repo[/subpath])
- PluginManifest: The plugin.json shipped at a plugin's root
- PluginRecord: The persisted record of an installed plugin
- Plugin: The capability set a loaded plugin module must provide
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from core.constants import PLUGIN_DEFAULT_ENTRY, PLUGIN_DEFAULT_VERSION
from core.exceptions import ValidationError

SPEC_PATTERN = re.compile(r"^@([^/\s]+)/([^/\s]+)(?:/(.+))?$")


@dataclass(frozen=True)
class PluginSpec:
    """A parsed plugin install spec.

    Attributes:
        owner: Repository owner
        repo: Repository name
        subpath: Optional directory inside the repository holding the plugin
    """

    owner: str
    repo: str
    subpath: str | None = None

    @property
    def name(self) -> str:
        """Derived plugin name: owner-repo or owner-repo-sub-path."""
        parts = [self.owner, self.repo]
        if self.subpath:
            parts.append(self.subpath.strip("/").replace("/", "-"))
        return "-".join(parts)


def parse_plugin_spec(spec: str) -> PluginSpec:
    """Parse ``@owner/repo`` or ``@owner/repo/subpath``.

    Raises:
        ValidationError: If the spec is malformed
    """
    match = SPEC_PATTERN.match(spec.strip()) if isinstance(spec, str) else None
    if not match:
        raise ValidationError(
            f"Invalid plugin spec: {spec}. Use @owner/repo or @owner/repo/subpath"
        )
    owner, repo, subpath = match.groups()
    if subpath is not None:
        subpath = subpath.strip("/")
        if not subpath or ".." in subpath.split("/"):
            raise ValidationError(f"Invalid plugin subpath in spec: {spec}")
    return PluginSpec(owner=owner, repo=repo, subpath=subpath or None)


class PluginManifest(BaseModel):
    """Contents of plugin.json. Unknown keys are preserved."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    version: str = PLUGIN_DEFAULT_VERSION
    description: str = "No description"
    namespace: str | None = None
    entry: str = PLUGIN_DEFAULT_ENTRY


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PluginRecord(BaseModel):
    """Persisted record of an installed plugin."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    spec: str
    version: str = PLUGIN_DEFAULT_VERSION
    enabled: bool = True
    installed_at: str = Field(default_factory=_now_iso, alias="installedAt")
    manifest: dict[str, Any] = Field(default_factory=dict)

    @property
    def namespace(self) -> str:
        """Prefix used to qualify this plugin's tool names."""
        return self.manifest.get("namespace") or self.name

    @property
    def entry(self) -> str:
        return self.manifest.get("entry") or PLUGIN_DEFAULT_ENTRY

    def to_document(self) -> dict[str, Any]:
        """Serialize for plugins.json (keyed by name, so name is omitted)."""
        return self.model_dump(by_alias=True, exclude={"name"})


@runtime_checkable
class Plugin(Protocol):
    """Protocol for plugin modules.

    A plugin's entry file must define both functions. ``execute_tool`` may be
    a coroutine function.
    """

    def get_tools(self) -> list[dict[str, Any]]:
        """Return tool descriptors with unqualified names."""
        ...

    def execute_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Run a tool and return ``{content: [...], isError?}``."""
        ...
