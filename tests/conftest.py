"""
Shared pytest fixtures for all tests.
"""
import json
import shutil
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

from core.backend import BackendState
from core.exceptions import BackendCallError, PluginInstallError
from plugins import PluginRecord, PluginStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_BACKEND = FIXTURES_DIR / "fake_backend.py"

GREETER_SOURCE = '''
def get_tools():
    return [
        {
            "name": "greet",
            "description": "Greet someone",
            "inputSchema": {"type": "object", "properties": {"who": {"type": "string"}}},
        }
    ]


async def execute_tool(name, arguments):
    if name == "greet":
        return text_result(f"Hello, {arguments.get('who', 'world')}!")
    return text_result(f"Unknown tool: {name}", is_error=True)
'''


BACKEND_TOOLS = [
    {
        "name": "get_me",
        "description": "This tool allows you to get details of the authenticated GitHub user. Extra.",
        "inputSchema": {"type": "object", "properties": {}, "additionalProperties": False},
    },
    {
        "name": "list_pull_requests",
        "description": "List pull requests in a GitHub repository.",
        "inputSchema": {
            "type": "object",
            "properties": {"owner": {"type": "string", "description": "Repository owner"}},
            "required": ["owner"],
        },
    },
]


class StubBackend:
    """Stands in for BackendProcessClient."""

    def __init__(self, tools: list[dict[str, Any]] | None = None):
        self.tools = tools if tools is not None else BACKEND_TOOLS
        self.state = BackendState.READY
        self.calls: list[tuple[str, dict]] = []

    @property
    def is_ready(self) -> bool:
        return self.state is BackendState.READY

    async def list_tools(self) -> list[dict[str, Any]]:
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        self.calls.append((name, arguments))
        if name not in {tool["name"] for tool in self.tools}:
            raise BackendCallError(f"Unknown tool {name}", code=-32601)
        return {"content": [{"type": "text", "text": f"backend:{name}"}]}


def backend_command(mode: str = "normal") -> list[str]:
    """Command line launching the fake backend in the given mode."""
    return [sys.executable, str(FAKE_BACKEND), mode]


def write_plugin(
    directory: Path,
    manifest: dict | None = None,
    source: str = GREETER_SOURCE,
    entry: str = "plugin.py",
    files: dict[str, str] | None = None,
) -> Path:
    """Write a plugin (manifest + entry file) into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    if manifest is not None:
        (directory / "plugin.json").write_text(json.dumps(manifest))
    (directory / entry).write_text(source)
    for name, content in (files or {}).items():
        (directory / name).write_text(content)
    return directory


class LocalSourceFetcher:
    """SourceFetcher copying from local directories instead of cloning."""

    def __init__(self, sources: dict[tuple[str, str], Path] | None = None):
        self.sources = sources or {}
        self.fetched: list[tuple[str, str]] = []

    def add(self, owner: str, repo: str, path: Path) -> None:
        self.sources[(owner, repo)] = path

    def fetch(self, owner: str, repo: str, dest: Path) -> None:
        self.fetched.append((owner, repo))
        source = self.sources.get((owner, repo))
        if source is None:
            raise PluginInstallError(f"Failed to clone {owner}/{repo}: repository not found")
        shutil.copytree(source, dest, dirs_exist_ok=True)


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    """Empty plugins directory."""
    return tmp_path / "plugins"


@pytest.fixture
def store(plugins_dir: Path) -> PluginStore:
    return PluginStore(plugins_dir)


@pytest.fixture
def fetcher() -> LocalSourceFetcher:
    return LocalSourceFetcher()


@pytest.fixture
def repos_dir(tmp_path: Path) -> Path:
    """Directory holding fake repository checkouts."""
    path = tmp_path / "repos"
    path.mkdir()
    return path


@pytest.fixture
def installed_plugin(store: PluginStore) -> Callable[..., PluginRecord]:
    """Factory placing a plugin directly into the store, bypassing install."""

    def factory(
        name: str = "acme-greeter",
        manifest: dict | None = None,
        source: str = GREETER_SOURCE,
        enabled: bool = True,
    ) -> PluginRecord:
        manifest = manifest if manifest is not None else {"name": name, "version": "1.2.0"}
        write_plugin(store.plugin_path(name), manifest, source, entry=manifest.get("entry", "plugin.py"))
        record = PluginRecord(
            name=name,
            spec=f"@acme/{name}",
            version=manifest.get("version", "1.0.0"),
            enabled=enabled,
            manifest=manifest,
        )
        store.add(record)
        return record

    return factory
