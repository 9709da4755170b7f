from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from toolchat.errors import DuplicateCapabilityError
from toolchat.tool import Tool


@dataclass(frozen=True)
class CapabilityDescriptor:
    name: str
    description: str
    input_schema: dict[str, Any]


class CapabilityRegistry:
    """Capabilities contributed for one request, keyed by name.

    Each capability belongs to exactly one named group so that mode profiles can
    enable whole groups at once.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._groups: dict[str, list[str]] = {}

    def register(self, group: str, tools: list[Tool]) -> None:
        names = self._groups.setdefault(group, [])
        for tool in tools:
            if tool.name in self._tools:
                owner = self.group_of(tool.name)
                raise DuplicateCapabilityError(
                    f'Capability "{tool.name}" from group "{group}" is already registered by group "{owner}"'
                )
            self._tools[tool.name] = tool
            names.append(tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def group_names(self, group: str) -> list[str]:
        return list(self._groups.get(group, []))

    def groups(self) -> list[str]:
        return list(self._groups)

    def group_of(self, name: str) -> str | None:
        for group, names in self._groups.items():
            if name in names:
                return group
        return None

    def descriptors(self) -> list[CapabilityDescriptor]:
        return [
            CapabilityDescriptor(name=t.name, description=t.description, input_schema=t.input_schema)
            for t in self._tools.values()
        ]

    def subset(self, names: list[str]) -> list[Tool]:
        """Return the registered tools for ``names`` in registry order, ignoring unknown names."""
        wanted = set(names)
        return [t for n, t in self._tools.items() if n in wanted]


@dataclass(frozen=True)
class CapabilityGroup:
    name: str
    enabled: Callable[[dict], bool]
    build: Callable[[dict], list[Tool]]


def _always(_: dict) -> bool:
    return True


def _filesystem_tools(ctx: dict) -> list[Tool]:
    from toolchat.tools.append_file_tool import AppendFileTool
    from toolchat.tools.list_directory_tool import ListDirectoryTool
    from toolchat.tools.read_file_tool import ReadFileTool
    from toolchat.tools.write_file_tool import WriteFileTool

    working_directory = ctx["working_directory"]
    return [
        ReadFileTool(working_directory),
        WriteFileTool(working_directory),
        AppendFileTool(working_directory),
        ListDirectoryTool(working_directory),
    ]


def _git_tools(ctx: dict) -> list[Tool]:
    from toolchat.tools.git_tool import GitTool

    return [GitTool(ctx["working_directory"])]


def _code_tools(ctx: dict) -> list[Tool]:
    from toolchat.tools.run_command_tool import RunCommandTool

    return [RunCommandTool(ctx["working_directory"])]


def _url_tools(_: dict) -> list[Tool]:
    from toolchat.tools.web.web_fetch_tool import WebFetchTool

    return [WebFetchTool()]


def _web_search_enabled(ctx: dict) -> bool:
    return bool(ctx.get("brave_api_key"))


def _web_search_tools(ctx: dict) -> list[Tool]:
    from toolchat.tools.web.brave_search_provider import BraveSearchProvider
    from toolchat.tools.web.web_search_tool import WebSearchTool

    return [WebSearchTool(BraveSearchProvider(ctx["brave_api_key"]))]


def _thinking_tools(_: dict) -> list[Tool]:
    from toolchat.tools.sequential_thinking_tool import SequentialThinkingTool

    return [SequentialThinkingTool()]


def _brainstorm_enabled(ctx: dict) -> bool:
    return ctx.get("provider") is not None


def _brainstorm_tools(ctx: dict) -> list[Tool]:
    from toolchat.tools.brainstorm_tool import BrainstormTool

    return [BrainstormTool(ctx["provider"], ctx["model"])]


def _mcp_enabled(ctx: dict) -> bool:
    return bool(ctx.get("mcp_tools"))


def _mcp_tools(ctx: dict) -> list[Tool]:
    return list(ctx["mcp_tools"])


_GROUPS = [
    CapabilityGroup(name="filesystem", enabled=_always, build=_filesystem_tools),
    CapabilityGroup(name="git", enabled=_always, build=_git_tools),
    CapabilityGroup(name="code", enabled=_always, build=_code_tools),
    CapabilityGroup(name="url", enabled=_always, build=_url_tools),
    CapabilityGroup(name="web_search", enabled=_web_search_enabled, build=_web_search_tools),
    CapabilityGroup(name="thinking", enabled=_always, build=_thinking_tools),
    CapabilityGroup(name="brainstorm", enabled=_brainstorm_enabled, build=_brainstorm_tools),
    CapabilityGroup(name="mcp", enabled=_mcp_enabled, build=_mcp_tools),
]


class RegistryFactory:
    """Builds a fresh registry per request, scoped to that request's working directory."""

    def __init__(
        self,
        *,
        provider: Any = None,
        model: str = "",
        brave_api_key: str | None = None,
        mcp_tools: list[Tool] | None = None,
        groups: list[CapabilityGroup] | None = None,
    ) -> None:
        self._provider = provider
        self._model = model
        self._brave_api_key = brave_api_key
        self._mcp_tools = list(mcp_tools or [])
        self._groups = groups if groups is not None else _GROUPS

    def build(self, working_directory: str | None) -> CapabilityRegistry:
        ctx = {
            "working_directory": working_directory,
            "provider": self._provider,
            "model": self._model,
            "brave_api_key": self._brave_api_key,
            "mcp_tools": self._mcp_tools,
        }
        registry = CapabilityRegistry()
        for group in self._groups:
            if group.enabled(ctx):
                registry.register(group.name, group.build(ctx))
        logger.debug(
            f"Capability registry built: {len(registry)} capabilities in groups {registry.groups()} "
            f"(working directory: {working_directory})"
        )
        return registry
