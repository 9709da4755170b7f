import anthropic
from loguru import logger

from toolchat.provider import DeltaCallback, ModelTurn, Usage
from toolchat.providers.common import convert_tools, repair_instructions
from toolchat.tool import Tool

MIN_THINKING_BUDGET_TOKENS = 1024


def _to_anthropic_content(content: str | list[dict]) -> str | list[dict]:
    """Map internal ``file`` parts onto Anthropic document/image blocks."""
    if isinstance(content, str):
        return content

    out: list[dict] = []
    for block in content:
        if block.get("type") != "file":
            out.append(block)
            continue
        mime_type = block.get("mime_type", "application/pdf")
        source = {"type": "base64", "media_type": mime_type, "data": block["data"]}
        if mime_type.startswith("image/"):
            out.append({"type": "image", "source": source})
        else:
            out.append({"type": "document", "source": source})
    return out


def _to_anthropic_messages(messages: list[dict]) -> list[dict]:
    return [{"role": m["role"], "content": _to_anthropic_content(m["content"])} for m in messages]


def _citation_sources(block) -> list[dict]:
    sources: list[dict] = []
    for citation in getattr(block, "citations", None) or []:
        url = getattr(citation, "url", None)
        if url:
            sources.append({"url": url, "title": getattr(citation, "title", None) or url})
    return sources


class AnthropicProvider:
    def __init__(self, api_key: str, *, thinking_budget_tokens: int = 0):
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._thinking_budget_tokens = thinking_budget_tokens

    def convert_tools(self, tools: list[Tool]) -> list[dict]:
        return convert_tools(tools)

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
        """Stream one round, forwarding text and thinking deltas to ``on_delta``.

        Returns the assembled turn with tool_use blocks and token usage.
        """
        kwargs: dict = dict(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=_to_anthropic_messages(messages),
        )
        if tools:
            kwargs["tools"] = tools
        budget = min(self._thinking_budget_tokens, max_tokens - 1)
        if budget >= MIN_THINKING_BUDGET_TOKENS:
            # Extended thinking requires temperature 1 and a budget below max_tokens.
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": budget}
            kwargs["temperature"] = 1.0
        elif self._thinking_budget_tokens > 0:
            logger.warning(
                f"Extended thinking disabled for this round: max_tokens={max_tokens} leaves a budget "
                f"below the {MIN_THINKING_BUDGET_TOKENS} token minimum"
            )

        logger.debug(
            f"API request: model={model}, max_tokens={max_tokens}, "
            f"messages={len(messages)}, tools={len(tools)}"
        )
        async with self._client.messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type != "content_block_delta" or on_delta is None:
                    continue
                if event.delta.type == "text_delta":
                    await on_delta("text", event.delta.text)
                elif event.delta.type == "thinking_delta":
                    await on_delta("reasoning", event.delta.thinking)

            response = await stream.get_final_message()

        usage = Usage(response.usage.input_tokens, response.usage.output_tokens)
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.prompt_tokens}, output_tokens={usage.completion_tokens}"
        )

        assistant_content: list[dict] = []
        tool_use_blocks: list[dict] = []
        sources: list[dict] = []
        for block in response.content:
            if block.type == "text":
                assistant_content.append({"type": "text", "text": block.text})
                sources.extend(_citation_sources(block))
            elif block.type == "thinking":
                assistant_content.append(
                    {"type": "thinking", "thinking": block.thinking, "signature": block.signature}
                )
            elif block.type == "tool_use":
                tool_block = {
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                }
                assistant_content.append(tool_block)
                tool_use_blocks.append(tool_block)

        return ModelTurn(
            message={"role": "assistant", "content": assistant_content},
            tool_use_blocks=tool_use_blocks,
            stop_reason=response.stop_reason,
            usage=usage,
            sources=sources,
            model=getattr(response, "model", model) or model,
        )

    async def create_message(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        messages: list[dict],
        *,
        system_prompt: str = "",
    ) -> str:
        logger.debug(f"Completion request: model={model}, messages={len(messages)}")
        kwargs: dict = dict(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=_to_anthropic_messages(messages),
        )
        if system_prompt:
            kwargs["system"] = system_prompt
        response = await self._client.messages.create(**kwargs)
        logger.debug(
            f"Completion response: input_tokens={response.usage.input_tokens}, "
            f"output_tokens={response.usage.output_tokens}"
        )
        return "".join(block.text for block in response.content if block.type == "text")

    async def generate_object(
        self,
        model: str,
        max_tokens: int,
        prompt: str,
        schema: dict,
        *,
        name: str = "result",
    ) -> dict:
        logger.debug(f"Structured request: model={model}, name={name}")
        response = await self._client.messages.create(
            model=model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": repair_instructions(prompt)}],
            tools=[{"name": name, "description": f"Return the {name}.", "input_schema": schema}],
            tool_choice={"type": "tool", "name": name},
        )
        for block in response.content:
            if block.type == "tool_use":
                return dict(block.input)
        raise ValueError(f"Model returned no structured {name}")
