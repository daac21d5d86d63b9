"""Client-facing JSON-RPC request handling.

Requests arrive as newline-delimited JSON on the client stream. Each decoded
request runs in its own task, so a slow tool call does not hold up the next
request; replies are written as they complete and the client correlates them
by id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from core.constants import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    SERVER_NAME,
    SERVER_VERSION,
)
from core.exceptions import CoreError, ValidationError
from core.framing import FramedChannel, encode_message
from core.models import ToolResult

from .aggregator import ToolAggregator

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536

Writer = Callable[[bytes], Awaitable[None]]


def error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


class RequestDispatcher:
    """Answers initialize, ping, tools/list and tools/call.

    Every failure inside a handler becomes a JSON-RPC error reply; no single
    request can take the dispatcher down.
    """

    def __init__(
        self,
        aggregator: ToolAggregator,
        server_name: str = SERVER_NAME,
        server_version: str = SERVER_VERSION,
    ):
        self.aggregator = aggregator
        self.server_info = {"name": server_name, "version": server_version}
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
        }
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        """Process one decoded client message.

        Returns:
            The reply, or None for notifications and undeliverable input
        """
        if not isinstance(message, dict):
            logger.debug("Dropping non-object client message: %r", message)
            return None

        has_id = "id" in message
        request_id = message.get("id")
        method = message.get("method")

        if not isinstance(method, str):
            if has_id and ("result" in message or "error" in message):
                logger.debug("Ignoring client response for id %r", request_id)
                return None
            if has_id:
                return error_response(request_id, INVALID_REQUEST, "Invalid request: missing method")
            logger.debug("Dropping client message without method or id")
            return None

        if not has_id:
            logger.debug("Client notification: %s", method)
            return None

        handler = self._handlers.get(method)
        if handler is None:
            logger.debug("Unknown method: %s", method)
            return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        params = message.get("params")
        if params is None:
            params = {}
        try:
            if not isinstance(params, dict):
                raise ValidationError("Request params must be an object")
            result = await handler(params)
        except CoreError as e:
            logger.warning("%s failed: %s", method, e)
            return error_response(request_id, INTERNAL_ERROR, str(e))
        except Exception as e:
            logger.exception("Unexpected error handling %s", method)
            return error_response(request_id, INTERNAL_ERROR, str(e) or e.__class__.__name__)

        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    async def serve(self, reader: asyncio.StreamReader, write: Writer) -> None:
        """Read client requests until EOF, answering each as it completes.

        Args:
            reader: Client byte stream
            write: Coroutine function writing one encoded reply
        """

        def on_message(message: Any) -> None:
            task = asyncio.create_task(self._respond(message, write))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        channel = FramedChannel(on_message, label="client")
        while True:
            chunk = await reader.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            channel.push(chunk)

        if channel.pending:
            logger.debug("Discarding %d bytes of unterminated client input", len(channel.pending))
        if self._tasks:
            logger.debug("Client closed input; waiting for %d in-flight request(s)", len(self._tasks))
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def cancel_in_flight(self) -> int:
        """Cancel requests still running (used on shutdown)."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        return len(tasks)

    async def _respond(self, message: Any, write: Writer) -> None:
        reply = await self.handle_message(message)
        if reply is None:
            return
        try:
            await write(encode_message(reply))
        except OSError as e:
            logger.error("Failed to write reply for id %r: %s", reply.get("id"), e)

    # Handlers

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo") or {}
        logger.info(
            "Client initialized: %s %s",
            client.get("name", "unknown"),
            client.get("version", ""),
        )
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": dict(self.server_info),
        }

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        tools = self.aggregator.list_tools()
        return {"tools": [tool.to_wire() for tool in tools]}

    async def _tools_call(self, params: dict[str, Any]) -> Any:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("tools/call requires a tool name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise ValidationError("Tool arguments must be an object")

        logger.info("Tool call: %s", name)
        result = await self.aggregator.call_tool(name, arguments)
        if isinstance(result, ToolResult):
            return result.to_wire()
        return result
