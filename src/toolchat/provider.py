from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from toolchat.errors import ConfigurationError
from toolchat.tool import Tool

# (kind, text) where kind is "text" or "reasoning"
DeltaCallback = Callable[[str, str], Awaitable[None]]


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def add(self, other: Usage) -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens

    def to_dict(self) -> dict:
        return {"promptTokens": self.prompt_tokens, "completionTokens": self.completion_tokens}


@dataclass
class ModelTurn:
    message: dict
    tool_use_blocks: list[dict]
    stop_reason: str
    usage: Usage = field(default_factory=Usage)
    sources: list[dict] = field(default_factory=list)
    model: str = ""


@runtime_checkable
class LLMProvider(Protocol):
    async def stream_turn(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict],
        *,
        on_delta: DeltaCallback | None = None,
    ) -> ModelTurn:
        """Run one model round, reporting text and reasoning deltas as they arrive.

        Returns the assembled assistant message in internal (Anthropic-style) format.
        """
        ...

    async def create_message(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        messages: list[dict],
        *,
        system_prompt: str = "",
    ) -> str:
        """Non-streaming completion returning only the text."""
        ...

    async def generate_object(
        self,
        model: str,
        max_tokens: int,
        prompt: str,
        schema: dict,
        *,
        name: str = "result",
    ) -> dict:
        """Force a structured response matching ``schema`` and return it as a dict."""
        ...

    def convert_tools(self, tools: list[Tool]) -> list[dict]:
        """Convert Tool protocol objects to provider-specific tool schema."""
        ...


def create_provider(
    provider_name: str,
    api_key: str,
    *,
    base_url: str | None = None,
    thinking_budget_tokens: int = 0,
) -> LLMProvider:
    """Factory: create an LLMProvider by name."""
    name = provider_name.strip().lower()
    if name == "anthropic":
        from toolchat.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, thinking_budget_tokens=thinking_budget_tokens)
    if name == "openai":
        from toolchat.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, base_url=base_url)
    raise ConfigurationError(f"Unknown provider: {provider_name!r}. Supported: 'anthropic', 'openai'")
