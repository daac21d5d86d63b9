"""Unified tool catalog and call routing.

The catalog is the concatenation of three sources in a fixed order:

1. backend tools, compressed once when discovered
2. the six plugin management tools
3. tools of the currently loaded plugins

Calls route management first, then plugin, then backend. Names are not
de-duplicated: a name listed by two sources is logged and routed by that
precedence. Names missing from the cached backend catalog are still
forwarded while the backend runs; its refusal is reported as an
unhandled tool.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Any

from core.analytics import AnalyticsLogger
from core.backend import BackendProcessClient
from core.compression import compress_tool, wire_size
from core.constants import CHARS_PER_TOKEN
from core.exceptions import BackendCallError, BackendFatalError, NotFoundError
from core.models import ToolDescriptor, ToolResult
from plugins import PluginRegistry

from .logging_config import timed
from .management import ManagementTools

logger = logging.getLogger(__name__)


class ToolAggregator:
    """Merges backend, management and plugin tools behind one interface.

    Attributes:
        backend: Client of the spawned backend process
        plugins: Registry of installed and loaded plugins
        management: The plugin_* tools
        analytics: Optional usage recorder
    """

    def __init__(
        self,
        backend: BackendProcessClient,
        plugins: PluginRegistry,
        analytics: AnalyticsLogger | None = None,
    ):
        self.backend = backend
        self.plugins = plugins
        self.management = ManagementTools(plugins)
        self.analytics = analytics
        self._backend_tools: list[ToolDescriptor] = []
        self._backend_names: set[str] = set()
        self.bytes_before = 0
        self.bytes_after = 0

    @property
    def backend_tools(self) -> list[ToolDescriptor]:
        return list(self._backend_tools)

    @property
    def tokens_saved(self) -> int:
        """Estimated tokens saved per catalog listing by compression."""
        return max(0, self.bytes_before - self.bytes_after) // CHARS_PER_TOKEN

    @property
    def total_calls(self) -> int:
        return self.analytics.total_calls if self.analytics is not None else 0

    @timed("Backend tool discovery", level=logging.INFO)
    async def refresh_backend_tools(self) -> list[ToolDescriptor]:
        """Fetch the backend catalog, compress it and cache the result.

        Returns:
            The compressed backend tools
        """
        raw_tools = await self.backend.list_tools()
        tools: list[ToolDescriptor] = []
        before = after = 0
        for raw in raw_tools:
            original = ToolDescriptor.model_validate(raw)
            compressed = compress_tool(original)
            original_size = wire_size(original.to_wire())
            optimized_size = wire_size(compressed.to_wire())
            before += original_size
            after += optimized_size
            if self.analytics is not None:
                self.analytics.record_optimization(original.name, original_size, optimized_size)
            tools.append(compressed)

        self._backend_tools = tools
        self._backend_names = {tool.name for tool in tools}
        self.bytes_before, self.bytes_after = before, after

        if before:
            logger.info(
                "Compressed %d backend tools: %d -> %d bytes (%.1f%% smaller)",
                len(tools),
                before,
                after,
                (before - after) / before * 100,
            )
        return tools

    def list_tools(self) -> list[ToolDescriptor]:
        """Backend, then management, then plugin tools; duplicates kept."""
        tools = [
            *self._backend_tools,
            *self.management.list_tools(),
            *self.plugins.list_tools(),
        ]
        duplicates = [name for name, count in Counter(t.name for t in tools).items() if count > 1]
        for name in duplicates:
            logger.warning("Tool name '%s' is listed by more than one source", name)
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> Any:
        """Route a call to the management, plugin or backend handler.

        Returns:
            A ToolResult for management and plugin tools, the backend's
            result payload otherwise

        Raises:
            NotFoundError: If no source handles the name
            BackendFatalError: If a cataloged backend tool is called while the
                backend is not running
            BackendCallError: If the backend rejects a call to a cataloged tool
        """
        arguments = arguments or {}

        if self.management.handles(name):
            return await self.management.call(name, arguments)

        if self.plugins.owns_tool(name):
            return await self._call_plugin(name, arguments)

        cataloged = name in self._backend_names
        if not self.backend.is_ready:
            if not cataloged:
                raise self._unhandled(name)
            raise BackendFatalError(
                f"Backend is not available (state: {self.backend.state.value})"
            )
        if cataloged:
            return await self.backend.call_tool(name, arguments)

        # Not in the cached catalog: the backend may have gained it since discovery
        try:
            return await self.backend.call_tool(name, arguments)
        except BackendCallError as e:
            logger.debug("Backend rejected uncataloged tool %s: %s", name, e)
            raise self._unhandled(name) from e

    @staticmethod
    def _unhandled(name: str) -> NotFoundError:
        return NotFoundError("Tool", name, f"Tool {name} is not handled by any backend")

    async def _call_plugin(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        start = time.perf_counter()
        success = False
        try:
            result = await self.plugins.invoke_tool(name, arguments)
            success = not result.is_error
            return result
        finally:
            if self.analytics is not None:
                self.analytics.record_tool_call(name, (time.perf_counter() - start) * 1000, success)
