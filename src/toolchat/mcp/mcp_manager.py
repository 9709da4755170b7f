import asyncio
import os
from contextlib import AbstractAsyncContextManager
from typing import Any

from loguru import logger
from mcp import ClientSession, StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamable_http_client

from toolchat.mcp.mcp_tool_proxy import McpToolProxy
from toolchat.tool import Tool

_SHUTDOWN_TIMEOUT = 5.0


def _open_streams(config: dict[str, Any]) -> AbstractAsyncContextManager:
    transport = config.get("transport", "stdio")
    if transport == "stdio":
        env = dict(os.environ)
        env.update(config.get("env") or {})
        return stdio_client(StdioServerParameters(
            command=config["command"],
            args=config.get("args", []),
            env=env,
        ))
    if transport == "http":
        return streamable_http_client(config["url"])
    raise ValueError(f"Unknown MCP transport '{transport}'")


class _ServerConnection:
    """Keeps one server session open in a background task until shutdown."""

    def __init__(self, name: str):
        self.name = name
        self.tools: list[Tool] = []
        self._ready = asyncio.Event()
        self._shutdown = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._error: Exception | None = None

    async def _serve(self, config: dict[str, Any]) -> None:
        async with _open_streams(config) as streams:
            read_stream, write_stream = streams[0], streams[1]
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                listed = await session.list_tools()
                self.tools = [
                    McpToolProxy(self.name, t.name, t.description, t.inputSchema, session)
                    for t in listed.tools
                ]
                self._ready.set()
                await self._shutdown.wait()

    async def start(self, config: dict[str, Any]) -> None:
        async def run() -> None:
            try:
                await self._serve(config)
            except Exception as ex:
                self._error = ex
                self._ready.set()

        self._task = asyncio.create_task(run())
        await self._ready.wait()
        if self._error is not None:
            raise self._error

    async def stop(self) -> None:
        if self._task is None or self._task.done():
            return
        # stdio_client's anyio task group may ignore asyncio cancellation alone.
        self._shutdown.set()
        self._task.cancel()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=_SHUTDOWN_TIMEOUT)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            logger.debug(f"MCP server '{self.name}' stopped")


class McpManager:
    """Connects to the configured MCP servers; their tools form the ``mcp`` capability group."""

    def __init__(self, server_configs: dict[str, dict[str, Any]]):
        self._server_configs = server_configs
        self._connections: list[_ServerConnection] = []

    async def connect_all(self) -> list[Tool]:
        tools: list[Tool] = []
        for server_name, config in self._server_configs.items():
            if config.get("enabled", True) is False:
                logger.info(f"MCP server '{server_name}' disabled in config")
                continue
            conn = _ServerConnection(server_name)
            self._connections.append(conn)
            try:
                await conn.start(config)
            except Exception as ex:
                logger.error(f"Failed to connect to MCP server '{server_name}': {ex}")
                continue
            tools.extend(conn.tools)
            logger.info(f"MCP server '{server_name}': {len(conn.tools)} tool(s) discovered")
        return tools

    async def close(self) -> None:
        for conn in self._connections:
            try:
                await conn.stop()
            except Exception as ex:
                logger.warning(f"MCP server '{conn.name}' shutdown error: {ex}")
        self._connections.clear()
