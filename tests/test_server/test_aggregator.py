"""Tests for the tool aggregator."""

import logging
from typing import Callable

import pytest

from conftest import LocalSourceFetcher, StubBackend
from core.analytics import AnalyticsLogger
from core.backend import BackendState
from core.exceptions import BackendFatalError, NotFoundError
from core.models import ToolResult
from plugins import PluginInstaller, PluginRecord, PluginRegistry, PluginStore
from server.aggregator import ToolAggregator
from server.management import MANAGEMENT_TOOLS


@pytest.fixture
def registry(store: PluginStore, fetcher: LocalSourceFetcher) -> PluginRegistry:
    return PluginRegistry(store, PluginInstaller(store, fetcher, install_dependencies=False))


@pytest.fixture
def backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def aggregator(backend: StubBackend, registry: PluginRegistry, tmp_path) -> ToolAggregator:
    return ToolAggregator(backend, registry, AnalyticsLogger(tmp_path / "analytics.jsonl"))


class TestListTools:
    """Tests for catalog assembly."""

    @pytest.mark.asyncio
    async def test_order_backend_management_plugin(
        self,
        aggregator: ToolAggregator,
        registry: PluginRegistry,
        installed_plugin: Callable[..., PluginRecord],
    ):
        """2 backend + 6 management + 1 plugin tool, in that order."""
        installed_plugin("acme-greeter")
        registry.load_all()
        await aggregator.refresh_backend_tools()

        names = [tool.name for tool in aggregator.list_tools()]

        assert len(names) == 9
        assert names[:2] == ["get_me", "list_pull_requests"]
        assert names[2:8] == [tool.name for tool in MANAGEMENT_TOOLS]
        assert names[8] == "acme-greeter_greet"

    @pytest.mark.asyncio
    async def test_backend_tools_are_compressed(self, aggregator: ToolAggregator):
        await aggregator.refresh_backend_tools()

        get_me, list_prs = aggregator.list_tools()[:2]

        assert get_me.description == "get details of authenticated GitHub user"
        assert get_me.input_schema == {"type": "object", "properties": {}}
        assert list_prs.description == "List PRs in repo"
        assert list_prs.input_schema["properties"]["owner"] == {"type": "string"}
        assert aggregator.bytes_after < aggregator.bytes_before
        assert aggregator.tokens_saved > 0

    @pytest.mark.asyncio
    async def test_optimizations_recorded(self, aggregator: ToolAggregator, tmp_path):
        await aggregator.refresh_backend_tools()

        lines = (tmp_path / "analytics.jsonl").read_text().splitlines()
        assert len(lines) == 2
        assert all('"event": "optimization"' in line for line in lines)

    def test_before_discovery_only_local_tools(self, aggregator: ToolAggregator):
        assert [t.name for t in aggregator.list_tools()] == [t.name for t in MANAGEMENT_TOOLS]

    @pytest.mark.asyncio
    async def test_duplicates_kept_and_logged(
        self,
        registry: PluginRegistry,
        tmp_path,
        caplog: pytest.LogCaptureFixture,
    ):
        """A backend tool sharing a management tool's name is kept and logged."""
        backend = StubBackend([{"name": "plugin_list", "description": "Backend list"}])
        aggregator = ToolAggregator(backend, registry)
        await aggregator.refresh_backend_tools()

        with caplog.at_level(logging.WARNING, logger="server.aggregator"):
            names = [t.name for t in aggregator.list_tools()]

        assert names.count("plugin_list") == 2
        assert "plugin_list" in caplog.text


class TestCallTool:
    """Tests for call routing."""

    @pytest.mark.asyncio
    async def test_routes_to_backend(self, aggregator: ToolAggregator, backend: StubBackend):
        await aggregator.refresh_backend_tools()

        result = await aggregator.call_tool("get_me", {"a": 1})

        assert result["content"][0]["text"] == "backend:get_me"
        assert backend.calls == [("get_me", {"a": 1})]

    @pytest.mark.asyncio
    async def test_routes_to_plugin(
        self,
        aggregator: ToolAggregator,
        registry: PluginRegistry,
        installed_plugin: Callable[..., PluginRecord],
        backend: StubBackend,
    ):
        installed_plugin("acme-greeter")
        registry.load_all()

        result = await aggregator.call_tool("acme-greeter_greet", {"who": "Eve"})

        assert isinstance(result, ToolResult)
        assert result.content[0].text == "Hello, Eve!"
        assert backend.calls == []
        assert aggregator.total_calls == 1

    @pytest.mark.asyncio
    async def test_management_shadows_backend(self, registry: PluginRegistry):
        """A management name is handled locally even if the backend lists it."""
        backend = StubBackend([{"name": "plugin_list"}])
        aggregator = ToolAggregator(backend, registry)
        await aggregator.refresh_backend_tools()

        result = await aggregator.call_tool("plugin_list", {})

        assert isinstance(result, ToolResult)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_unknown_tool(self, aggregator: ToolAggregator, backend: StubBackend):
        await aggregator.refresh_backend_tools()

        with pytest.raises(NotFoundError, match="bogus_tool is not handled by any backend"):
            await aggregator.call_tool("bogus_tool", {})
        assert backend.calls == [("bogus_tool", {})]

    @pytest.mark.asyncio
    async def test_tool_added_after_discovery(self, aggregator: ToolAggregator, backend: StubBackend):
        """A name the backend gains after discovery is forwarded, not rejected."""
        backend.tools = list(backend.tools)
        await aggregator.refresh_backend_tools()
        backend.tools.append({"name": "list_issues"})

        result = await aggregator.call_tool("list_issues", {"owner": "acme"})

        assert result == {"content": [{"type": "text", "text": "backend:list_issues"}]}
        assert backend.calls == [("list_issues", {"owner": "acme"})]
        assert "list_issues" not in [t.name for t in aggregator.list_tools()]

    @pytest.mark.asyncio
    async def test_backend_down_fails_fast(self, aggregator: ToolAggregator, backend: StubBackend):
        await aggregator.refresh_backend_tools()
        backend.state = BackendState.FAILED

        with pytest.raises(BackendFatalError):
            await aggregator.call_tool("get_me", {})
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_backend_down_unknown_tool(self, aggregator: ToolAggregator, backend: StubBackend):
        await aggregator.refresh_backend_tools()
        backend.state = BackendState.FAILED

        with pytest.raises(NotFoundError, match="bogus_tool is not handled by any backend"):
            await aggregator.call_tool("bogus_tool", {})
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_plugin_tool_disappears_after_disable(
        self,
        aggregator: ToolAggregator,
        installed_plugin: Callable[..., PluginRecord],
        registry: PluginRegistry,
    ):
        """Disabling through the management tool removes the plugin's tools."""
        installed_plugin("acme-greeter")
        registry.load_all()

        await aggregator.call_tool("plugin_disable", {"name": "acme-greeter"})

        assert "acme-greeter_greet" not in [t.name for t in aggregator.list_tools()]
        with pytest.raises(NotFoundError):
            await aggregator.call_tool("acme-greeter_greet", {})
