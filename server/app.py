"""
Proxy server setup and lifecycle.

Wires the configured backend, plugin registry, aggregator and dispatcher
together and runs them against the process's stdin/stdout.
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
from typing import Any

from config import ProxyConfig
from core.analytics import AnalyticsLogger
from core.backend import BackendProcessClient
from plugins import GitSourceFetcher, PluginInstaller, PluginRegistry, PluginStore

from .aggregator import ToolAggregator
from .dispatcher import RequestDispatcher
from .logging_config import log_timing

logger = logging.getLogger(__name__)


class ProxyServer:
    """One proxy session: backend process, plugins, and the client stream.

    Attributes:
        config: Loaded configuration
        analytics: Usage recorder shared by backend and aggregator
        backend: Backend process client
        plugins: Plugin registry
        aggregator: Unified tool catalog
        dispatcher: Client request handler
    """

    def __init__(self, config: ProxyConfig):
        self.config = config
        self.analytics = AnalyticsLogger(config.analytics.path, enabled=config.analytics.enabled)

        env = {**os.environ, **config.backend.env} if config.backend.env else None
        self.backend = BackendProcessClient(
            config.backend.argv,
            env=env,
            analytics=self.analytics,
            init_timeout=config.timeouts.initialize,
            discovery_timeout=config.timeouts.discovery,
            call_timeout=config.timeouts.call,
        )

        store = PluginStore(config.plugins.directory)
        installer = PluginInstaller(
            store,
            GitSourceFetcher(config.plugins.git_base_url),
            install_dependencies=config.plugins.install_dependencies,
        )
        self.plugins = PluginRegistry(store, installer)
        self.aggregator = ToolAggregator(self.backend, self.plugins, self.analytics)
        self.dispatcher = RequestDispatcher(self.aggregator)
        self._stopped = False

    async def start(self) -> None:
        """Load plugins, start the backend and discover its tools.

        Raises:
            BackendFatalError: If the backend cannot be spawned or dies
            RequestTimeoutError: If the handshake or discovery times out
            BackendCallError: If the backend rejects initialize or tools/list
        """
        with log_timing(logger, "Plugin loading", logging.INFO):
            self.plugins.load_all()
        with log_timing(logger, "Backend startup", logging.INFO):
            await self.backend.start()
        await self.aggregator.refresh_backend_tools()
        logger.info(
            "Serving %d tools (%d plugin(s) loaded)",
            len(self.aggregator.list_tools()),
            len(self.plugins.loaded_names),
        )

    async def serve_stdio(self) -> None:
        """Serve the client on stdin/stdout until EOF."""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        stdout = sys.stdout.buffer

        async def write(data: bytes) -> None:
            stdout.write(data)
            stdout.flush()

        await self.dispatcher.serve(reader, write)

    async def run(self) -> None:
        """Start, serve until EOF or SIGINT/SIGTERM, then shut down."""
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

        try:
            await self.start()
            serve_task = asyncio.create_task(self.serve_stdio())
            stop_task = asyncio.create_task(stop.wait())
            done, _ = await asyncio.wait(
                {serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if stop_task in done:
                logger.info("Received shutdown signal")
            else:
                logger.info("Client closed the connection")
            for task in (serve_task, stop_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
            if serve_task in done and serve_task.exception() is not None:
                raise serve_task.exception()
        finally:
            await self.shutdown()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(sig)

    async def shutdown(self) -> None:
        """Stop the backend and record session metrics. Idempotent."""
        if self._stopped:
            return
        self._stopped = True

        cancelled = self.dispatcher.cancel_in_flight()
        if cancelled:
            logger.info("Cancelled %d in-flight request(s)", cancelled)
        await self.backend.stop()

        self.analytics.record_session(self.aggregator.tokens_saved)
        report = self.report()
        self.plugins.clear()
        logger.info(
            "Session ended: %d tool call(s) in %ds, ~%d tokens saved per listing",
            report["total_tool_calls"],
            report["uptime_seconds"],
            report["tokens_saved"],
        )

    def report(self) -> dict[str, Any]:
        return {
            **self.analytics.report(),
            "tokens_saved": self.aggregator.tokens_saved,
            "plugins_loaded": self.plugins.loaded_names,
        }
