"""Plugin installation from git repositories.

Installing ``@owner/repo[/subpath]``:

1. parse the spec and derive the plugin name
2. refuse names that are already installed
3. shallow-clone owner/repo into a temporary directory
4. move the plugin subtree to <plugins_dir>/<name>
5. require and parse plugin.json
6. install requirements.txt into <plugin>/.packages, if present
7. record the plugin as enabled

Any failure from step 3 on removes both directories before the error
propagates, so a failed install leaves nothing on disk or in the store.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Protocol

from git import GitCommandError, Repo
from pydantic import ValidationError as ManifestValidationError

from core.constants import (
    PLUGIN_MANIFEST_FILE,
    PLUGIN_PACKAGES_DIR,
    PLUGIN_REQUIREMENTS_FILE,
)
from core.exceptions import (
    ConflictError,
    PluginInstallError,
    ValidationError,
)

from .models import PluginManifest, PluginRecord, parse_plugin_spec
from .storage import PluginStore

logger = logging.getLogger(__name__)

DEFAULT_GIT_BASE_URL = "https://github.com"
TEMP_DIR_PREFIX = "_temp_"


class SourceFetcher(Protocol):
    """Materializes a repository's files into a directory."""

    def fetch(self, owner: str, repo: str, dest: Path) -> None:
        ...


class GitSourceFetcher:
    """Fetches plugin sources with a depth-1 git clone.

    Attributes:
        base_url: Prefix of repository URLs (``<base_url>/<owner>/<repo>.git``)
    """

    def __init__(self, base_url: str = DEFAULT_GIT_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def repo_url(self, owner: str, repo: str) -> str:
        return f"{self.base_url}/{owner}/{repo}.git"

    def fetch(self, owner: str, repo: str, dest: Path) -> None:
        url = self.repo_url(owner, repo)
        logger.info("Cloning %s", url)
        try:
            Repo.clone_from(url, str(dest), depth=1)
        except GitCommandError as e:
            detail = (e.stderr or "").strip() or str(e)
            raise PluginInstallError(f"Failed to clone {owner}/{repo}: {detail}") from e


class PluginInstaller:
    """Installs and uninstalls plugins on disk and in the store."""

    def __init__(
        self,
        store: PluginStore,
        fetcher: SourceFetcher | None = None,
        install_dependencies: bool = True,
        python: str = sys.executable,
    ):
        """Initialize the installer.

        Args:
            store: Record store (also decides where plugin directories live)
            fetcher: Source fetcher; defaults to GitSourceFetcher
            install_dependencies: Run pip for plugins shipping requirements.txt
            python: Interpreter used to run pip
        """
        self.store = store
        self.fetcher = fetcher or GitSourceFetcher()
        self.install_dependencies = install_dependencies
        self.python = python

    async def install(self, spec: str) -> PluginRecord:
        """Install a plugin from an ``@owner/repo[/subpath]`` spec.

        Returns:
            The new, enabled PluginRecord

        Raises:
            ValidationError: Malformed spec, missing subpath or manifest
            ConflictError: A plugin with the derived name is installed
            PluginInstallError: Fetch or dependency installation failed
        """
        parsed = parse_plugin_spec(spec)
        name = parsed.name
        if self.store.exists(name):
            raise ConflictError("Plugin", name)

        plugin_path = self.store.plugin_path(name)
        if plugin_path.exists():
            raise PluginInstallError(
                f"Directory for plugin {name} already exists: {plugin_path}"
            )

        temp_dir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX, dir=self.store.plugins_dir))
        try:
            await asyncio.to_thread(self.fetcher.fetch, parsed.owner, parsed.repo, temp_dir)

            source_dir = temp_dir / parsed.subpath if parsed.subpath else temp_dir
            if not source_dir.is_dir():
                raise ValidationError(f"Subpath {parsed.subpath} not found in repository")
            shutil.move(str(source_dir), str(plugin_path))

            manifest_data = self._read_manifest(plugin_path)
            manifest = PluginManifest.model_validate(manifest_data)
            if manifest.entry and ".." in Path(manifest.entry).parts:
                raise ValidationError(f"Invalid plugin entry: {manifest.entry}")

            requirements = plugin_path / PLUGIN_REQUIREMENTS_FILE
            if self.install_dependencies and requirements.is_file():
                await self._install_requirements(name, plugin_path, requirements)

            record = PluginRecord(
                name=name,
                spec=spec,
                version=manifest.version,
                enabled=True,
                manifest=manifest_data,
            )
            self.store.add(record)
        except Exception:
            _remove_tree(plugin_path)
            raise
        finally:
            _remove_tree(temp_dir)

        logger.info("Installed plugin '%s' v%s", name, record.version)
        return record

    def uninstall(self, name: str) -> PluginRecord:
        """Delete a plugin's directory and record.

        Raises:
            NotFoundError: If the plugin is not installed
        """
        record = self.store.require(name)
        _remove_tree(self.store.plugin_path(name))
        self.store.remove(name)
        logger.info("Uninstalled plugin '%s'", name)
        return record

    def _read_manifest(self, plugin_path: Path) -> dict:
        manifest_path = plugin_path / PLUGIN_MANIFEST_FILE
        if not manifest_path.is_file():
            raise ValidationError(f"Plugin manifest ({PLUGIN_MANIFEST_FILE}) not found")
        try:
            data = json.loads(manifest_path.read_text())
            PluginManifest.model_validate(data)
        except (json.JSONDecodeError, ManifestValidationError) as e:
            raise ValidationError(f"Invalid plugin manifest: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError("Invalid plugin manifest: expected a JSON object")
        return data

    async def _install_requirements(self, name: str, plugin_path: Path, requirements: Path) -> None:
        logger.info("Installing dependencies for plugin '%s'", name)
        # Output is captured: our stdout carries protocol frames.
        process = await asyncio.create_subprocess_exec(
            self.python,
            "-m",
            "pip",
            "install",
            "--quiet",
            "--target",
            str(plugin_path / PLUGIN_PACKAGES_DIR),
            "-r",
            str(requirements),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[-500:]
            raise PluginInstallError(f"Dependency installation failed for {name}: {detail}")


def _remove_tree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path, ignore_errors=True)
