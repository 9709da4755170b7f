import json
from typing import Any

from loguru import logger
from mcp import ClientSession
from mcp.types import TextContent

TOOL_NAME_SEPARATOR = "__"


class McpToolProxy:
    """A tool discovered on an MCP server, exposed as ``<server>__<tool>``."""

    def __init__(
        self,
        server_name: str,
        tool_name: str,
        tool_description: str | None,
        tool_input_schema: dict[str, Any] | None,
        session: ClientSession,
    ):
        self._server_name = server_name
        self._tool_name = tool_name
        self._description = tool_description or f"{tool_name} (from MCP server {server_name})"
        self._input_schema = tool_input_schema or {"type": "object", "properties": {}}
        self._session = session

    @property
    def name(self) -> str:
        return f"{self._server_name}{TOOL_NAME_SEPARATOR}{self._tool_name}"

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    async def execute(self, tool_input: dict[str, Any]) -> str:
        logger.debug(f"MCP call {self.name}: {json.dumps(tool_input, default=str)[:500]}")
        result = await self._session.call_tool(self._tool_name, arguments=tool_input)

        parts = [block.text for block in result.content if isinstance(block, TextContent)]
        structured = getattr(result, "structuredContent", None)
        if not parts and structured:
            parts.append(json.dumps(structured, indent=2, default=str))
        output = "\n".join(parts) if parts else "(no output)"

        if result.isError:
            logger.warning(f"MCP tool {self.name} reported an error: {output[:500]}")
            raise RuntimeError(output)
        logger.debug(f"MCP result {self.name}: {len(output):,} chars")
        return output
