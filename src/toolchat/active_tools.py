from __future__ import annotations

import re
from typing import Any, Protocol

from loguru import logger

from toolchat.capability_registry import CapabilityRegistry
from toolchat.modes import Mode, profile_for

_CLASSIFIER_MAX_TOKENS = 1024
_THINKING_TAGS = re.compile(r"<thinking>.*?</thinking>", re.DOTALL)
_NAME_TRIM = " \t\r\n\"'`[]"


class ActiveSetPolicy(Protocol):
    async def choose_active_tools(self, registry: CapabilityRegistry, user_message: str) -> list[str]: ...


class StaticModePolicy:
    """Enables the capability groups listed in the mode's profile."""

    def __init__(self, mode: Mode):
        self._mode = mode

    async def choose_active_tools(self, registry: CapabilityRegistry, user_message: str) -> list[str]:
        names: list[str] = []
        for group in profile_for(self._mode).groups:
            names.extend(registry.group_names(group))
        return names


class ClassifierPolicy:
    """Asks a small model which capabilities suit the task and keeps the known names it returns."""

    def __init__(self, provider: Any, model: str):
        self._provider = provider
        self._model = model

    async def choose_active_tools(self, registry: CapabilityRegistry, user_message: str) -> list[str]:
        if not len(registry):
            return []

        descriptions = "\n\n".join(
            f'Name: "{d.name}"\nDescription: "{d.description}"' for d in registry.descriptors()
        )
        system = (
            "Your task is to determine the tools that are most useful for the user's task, "
            "which you will find in <task> tags.\n\n"
            f"Here are the tools available to choose from:\n{descriptions}\n\n"
            "Make sure you fully understand the user's task before deciding on the tools. "
            "Only respond with the tools that are most useful for the task, as a comma-separated "
            "list of tool names. If no tools are needed, respond with an empty line."
        )
        logger.debug(f"Classifying active tools with {self._model} over {len(registry)} capabilities")
        reply = await self._provider.create_message(
            self._model,
            _CLASSIFIER_MAX_TOKENS,
            0,
            [{"role": "user", "content": f"Task: <task>{user_message}</task> Output:"}],
            system_prompt=system,
        )
        return parse_tool_list(reply, registry)


def parse_tool_list(reply: str, registry: CapabilityRegistry) -> list[str]:
    chosen: list[str] = []
    discarded: list[str] = []
    for raw in _THINKING_TAGS.sub("", reply).split(","):
        name = raw.strip(_NAME_TRIM)
        if not name or name in chosen:
            continue
        if name in registry:
            chosen.append(name)
        else:
            discarded.append(name)
    if discarded:
        logger.warning(f"Classifier returned unknown tool names, discarded: {discarded}")
    return chosen


def tools_used_in_history(messages: list[dict], registry: CapabilityRegistry) -> list[str]:
    """Names of registered tools that earlier assistant turns called."""
    used: list[str] = []
    for msg in messages:
        content = msg.get("content")
        if msg.get("role") != "assistant" or not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_use":
                name = block.get("name")
                if name in registry and name not in used:
                    used.append(name)
    return used
