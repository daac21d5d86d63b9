"""
Client for the backend tool-provider process.

The backend is a child process speaking newline-delimited JSON-RPC on its
stdin/stdout. This module spawns it, performs the MCP handshake, and then
multiplexes any number of concurrent requests over the single pipe pair,
matching replies to requests by id through a CorrelationRegistry.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import time
from enum import Enum
from typing import Any

from .analytics import AnalyticsLogger
from .constants import (
    CALL_TIMEOUT,
    DISCOVERY_TIMEOUT,
    INIT_TIMEOUT,
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    SERVER_NAME,
    SERVER_VERSION,
    STOP_GRACE_PERIOD,
)
from .correlation import CorrelationRegistry
from .exceptions import (
    BackendCallError,
    BackendFatalError,
    InvalidOperationError,
)
from .framing import FramedChannel, encode_message

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536


class BackendState(str, Enum):
    """Lifecycle of the backend process."""

    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


class BackendProcessClient:
    """Manages the backend process: start, handshake, discovery, calls, shutdown.

    Examples:
        >>> client = BackendProcessClient(["github-mcp-server", "stdio"])
        >>> await client.start()
        >>> tools = await client.list_tools()
        >>> result = await client.call_tool("get_me", {})
        >>> await client.stop()
    """

    def __init__(
        self,
        command: list[str],
        env: dict[str, str] | None = None,
        analytics: AnalyticsLogger | None = None,
        init_timeout: float = INIT_TIMEOUT,
        discovery_timeout: float = DISCOVERY_TIMEOUT,
        call_timeout: float = CALL_TIMEOUT,
    ):
        """Initialize the client without starting anything.

        Args:
            command: Executable and arguments of the backend
            env: Environment for the child (None inherits ours)
            analytics: Receives per-call latency and outcome
            init_timeout: Deadline for the initialize handshake
            discovery_timeout: Deadline for tools/list
            call_timeout: Deadline for each tools/call
        """
        if not command:
            raise ValueError("Backend command must not be empty")
        self.command = command
        self.env = env
        self.analytics = analytics
        self.init_timeout = init_timeout
        self.discovery_timeout = discovery_timeout
        self.call_timeout = call_timeout

        self.state = BackendState.UNSTARTED
        self.server_info: dict[str, Any] = {}
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._registry = CorrelationRegistry()
        self._channel = FramedChannel(self._on_message, label="backend")
        self._request_ids = itertools.count(1)
        self._exit_error: BackendFatalError | None = None

    @property
    def is_ready(self) -> bool:
        return self.state is BackendState.READY

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def pending_requests(self) -> int:
        return len(self._registry)

    async def start(self) -> dict[str, Any]:
        """Spawn the backend and complete the initialize handshake.

        Returns:
            The backend's initialize result

        Raises:
            BackendFatalError: If the process cannot be spawned or exits early
            RequestTimeoutError: If the handshake exceeds init_timeout
            BackendCallError: If the backend rejects initialize
        """
        if self.state is not BackendState.UNSTARTED:
            raise InvalidOperationError(f"Backend already started (state: {self.state.value})")

        self.state = BackendState.STARTING
        logger.info("Starting backend: %s", " ".join(self.command))
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,  # inherited, backend logs pass through
                env=self.env,
            )
        except OSError as e:
            self.state = BackendState.FAILED
            raise BackendFatalError(f"Failed to spawn backend {self.command[0]}: {e}") from e

        self._reader_task = asyncio.create_task(self._read_loop())

        try:
            result = await self._request(
                "initialize",
                {
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
                },
                timeout=self.init_timeout,
                description="Backend initialization",
            )
        except Exception:
            self.state = BackendState.FAILED
            await self._shutdown_process()
            raise

        await self._send({"jsonrpc": JSONRPC_VERSION, "method": "notifications/initialized"})
        self.server_info = (result or {}).get("serverInfo", {})
        self.state = BackendState.READY
        logger.info(
            "Backend ready (pid %s, server %s)",
            self.pid,
            self.server_info.get("name", "unknown"),
        )
        return result or {}

    async def list_tools(self) -> list[dict[str, Any]]:
        """Ask the backend for its tool list.

        Returns:
            Raw tool dicts as sent by the backend
        """
        self._ensure_ready()
        result = await self._request(
            "tools/list",
            {},
            timeout=self.discovery_timeout,
            description="Backend tool discovery",
        )
        tools = (result or {}).get("tools")
        if not isinstance(tools, list):
            raise BackendCallError("Backend returned a malformed tools/list result")
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a backend tool.

        Args:
            name: Tool name as advertised by the backend
            arguments: Tool arguments

        Returns:
            The backend's result payload, unmodified

        Raises:
            BackendFatalError: If the backend is not running
            BackendCallError: If the backend answers with an error
            RequestTimeoutError: If no reply arrives within call_timeout
        """
        self._ensure_ready()
        start = time.perf_counter()
        success = False
        try:
            result = await self._request(
                "tools/call",
                {"name": name, "arguments": arguments},
                timeout=self.call_timeout,
                description=f"Tool call {name}",
            )
            success = True
            return result
        finally:
            if self.analytics is not None:
                latency_ms = (time.perf_counter() - start) * 1000
                self.analytics.record_tool_call(name, latency_ms, success)

    async def stop(self) -> None:
        """Terminate the backend. Pending requests are abandoned."""
        if self.state is BackendState.STOPPED:
            return
        self.state = BackendState.STOPPED
        abandoned = self._registry.clear()
        if abandoned:
            logger.debug("Abandoned %d pending backend request(s)", abandoned)
        await self._shutdown_process()
        logger.info("Backend stopped")

    async def _request(
        self,
        method: str,
        params: dict[str, Any],
        timeout: float,
        description: str,
    ) -> Any:
        if self._exit_error is not None:
            raise BackendFatalError(str(self._exit_error))

        request_id = next(self._request_ids)

        def is_reply(message: dict[str, Any]) -> bool:
            return (
                message.get("id") == request_id
                and "method" not in message
                and ("result" in message or "error" in message)
            )

        call_id, future = self._registry.expect(is_reply, timeout, description)
        try:
            await self._send(
                {
                    "jsonrpc": JSONRPC_VERSION,
                    "id": request_id,
                    "method": method,
                    "params": params,
                }
            )
        except BackendFatalError:
            self._registry.unregister(call_id)
            raise

        try:
            message = await future
        finally:
            self._registry.unregister(call_id)
        error = message.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise BackendCallError(
                    error.get("message") or f"{method} failed", code=error.get("code")
                )
            raise BackendCallError(str(error))
        return message.get("result")

    async def _send(self, message: dict[str, Any]) -> None:
        self._write(message)
        try:
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise BackendFatalError(f"Backend pipe closed: {e}") from e

    def _write(self, message: dict[str, Any]) -> None:
        process = self._process
        if process is None or process.stdin is None or process.stdin.is_closing():
            raise BackendFatalError("Backend process is not running")
        process.stdin.write(encode_message(message))

    def _ensure_ready(self) -> None:
        if self._exit_error is not None:
            raise BackendFatalError(str(self._exit_error))
        if self.state is not BackendState.READY:
            raise BackendFatalError(f"Backend is not ready (state: {self.state.value})")

    def _on_message(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.debug("Ignoring non-object backend message: %r", message)
            return
        if self._registry.dispatch(message):
            return
        if message.get("method") == "ping" and "id" in message:
            with contextlib.suppress(BackendFatalError):
                self._write({"jsonrpc": JSONRPC_VERSION, "id": message["id"], "result": {}})
            return
        # Late replies to timed-out calls land here too.
        logger.debug("Unclaimed backend message: %s", str(message)[:200])

    async def _read_loop(self) -> None:
        stdout = self._process.stdout
        while True:
            chunk = await stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            self._channel.push(chunk)
        returncode = await self._process.wait()
        self._on_exit(returncode)

    def _on_exit(self, returncode: int | None) -> None:
        if self.state is BackendState.STOPPED:
            return
        error = BackendFatalError(f"Backend process exited unexpectedly (code {returncode})")
        self._exit_error = error
        self.state = BackendState.FAILED
        logger.error("%s", error)
        rejected = self._registry.reject_all(error)
        if rejected:
            logger.error("Failed %d in-flight backend request(s)", rejected)

    async def _shutdown_process(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), STOP_GRACE_PERIOD)
            except asyncio.TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        task = self._reader_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
