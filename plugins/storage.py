"""Plugin storage for persisting installed-plugin records.

Records live in a single JSON document, ``plugins.json``, inside the plugins
directory (default ~/.copilot/plugins/). Each installed plugin's files live
in a sibling directory named after the plugin.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from core.constants import PLUGIN_REGISTRY_FILE
from core.exceptions import ConflictError, NotFoundError, PluginStoreError

from .models import PluginRecord

logger = logging.getLogger(__name__)

# Default plugin storage directory
PLUGINS_DIR = Path.home() / ".copilot" / "plugins"


def ensure_plugins_dir(plugins_dir: Path | None = None) -> Path:
    """Ensure the plugins directory exists.

    Args:
        plugins_dir: Optional custom plugins directory (defaults to PLUGINS_DIR)

    Returns:
        Path to the plugins directory
    """
    target_dir = plugins_dir or PLUGINS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    return target_dir


class PluginStore:
    """CRUD over the plugins.json document.

    The document is re-read on every operation so that edits made by another
    process between calls are not overwritten with stale data. Reads treat an
    unparseable document as empty; updates refuse to overwrite it.

    Attributes:
        plugins_dir: Directory holding plugins.json and plugin directories
        document_path: Path to plugins.json
    """

    def __init__(self, plugins_dir: Path | None = None):
        self.plugins_dir = ensure_plugins_dir(plugins_dir)
        self.document_path = self.plugins_dir / PLUGIN_REGISTRY_FILE
        if not self.document_path.exists():
            self._save({})

    def plugin_path(self, name: str) -> Path:
        """Directory holding an installed plugin's files."""
        return self.plugins_dir / name

    def list_records(self) -> list[PluginRecord]:
        """All installed plugins, in installation order."""
        return [
            PluginRecord(name=name, **info) for name, info in self._load().items()
        ]

    def get(self, name: str) -> Optional[PluginRecord]:
        info = self._load().get(name)
        if info is None:
            return None
        return PluginRecord(name=name, **info)

    def require(self, name: str) -> PluginRecord:
        """Like get(), but raise NotFoundError for unknown names."""
        record = self.get(name)
        if record is None:
            raise NotFoundError("Plugin", name)
        return record

    def exists(self, name: str) -> bool:
        return name in self._load()

    def add(self, record: PluginRecord) -> None:
        """Persist a new record.

        Raises:
            ConflictError: If a record with the same name exists
            PluginStoreError: If the existing document cannot be parsed
        """
        plugins = self._load(for_update=True)
        if record.name in plugins:
            raise ConflictError("Plugin", record.name)
        plugins[record.name] = record.to_document()
        self._save(plugins)
        logger.info("Recorded plugin '%s' (%s)", record.name, record.spec)

    def set_enabled(self, name: str, enabled: bool) -> PluginRecord:
        """Toggle a record's enabled flag in place.

        Raises:
            NotFoundError: If the plugin is not installed
            PluginStoreError: If the existing document cannot be parsed
        """
        plugins = self._load(for_update=True)
        if name not in plugins:
            raise NotFoundError("Plugin", name)
        plugins[name]["enabled"] = enabled
        self._save(plugins)
        logger.info("Plugin '%s' %s", name, "enabled" if enabled else "disabled")
        return PluginRecord(name=name, **plugins[name])

    def remove(self, name: str) -> PluginRecord:
        """Delete a record.

        Raises:
            NotFoundError: If the plugin is not installed
            PluginStoreError: If the existing document cannot be parsed
        """
        plugins = self._load(for_update=True)
        info = plugins.pop(name, None)
        if info is None:
            raise NotFoundError("Plugin", name)
        self._save(plugins)
        logger.info("Removed plugin record '%s'", name)
        return PluginRecord(name=name, **info)

    def _load(self, for_update: bool = False) -> dict[str, dict[str, Any]]:
        """Read the plugin mapping.

        Raises:
            PluginStoreError: If for_update is set and the document is
                unreadable or malformed
        """
        try:
            data = json.loads(self.document_path.read_text())
            plugins = data.get("plugins") if isinstance(data, dict) else None
            if not isinstance(plugins, dict):
                raise ValueError("missing \"plugins\" object")
        except (OSError, ValueError) as e:
            if for_update:
                raise PluginStoreError(
                    f"Refusing to update unreadable {self.document_path}: {e}"
                ) from e
            logger.warning("Failed to read %s, treating as empty: %s", self.document_path, e)
            return {}
        return plugins

    def _save(self, plugins: dict[str, dict[str, Any]]) -> None:
        # Temp file + replace: readers never see a partial document.
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{PLUGIN_REGISTRY_FILE}.", dir=self.plugins_dir
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump({"plugins": plugins}, f, indent=2)
            os.replace(tmp_name, self.document_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
