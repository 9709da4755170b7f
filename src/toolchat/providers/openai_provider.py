import json

import openai
from loguru import logger

from toolchat.provider import DeltaCallback, ModelTurn, Usage
from toolchat.providers.common import convert_tools, file_part_to_data_url, repair_instructions
from toolchat.tool import Tool

# Map OpenAI finish reasons to Anthropic-style stop reasons.
_STOP_REASON_MAP = {
    "stop": "end_turn",
    "tool_calls": "tool_use",
    "length": "max_tokens",
}


def _user_parts(content: list) -> tuple[list[dict], list[dict]]:
    """Split internal user blocks into OpenAI content parts and tool messages."""
    parts: list[dict] = []
    tool_messages: list[dict] = []
    for block in content:
        if isinstance(block, str):
            parts.append({"type": "text", "text": block})
        elif block.get("type") == "text":
            parts.append({"type": "text", "text": block["text"]})
        elif block.get("type") == "file":
            if block.get("mime_type", "").startswith("image/"):
                parts.append({"type": "image_url", "image_url": {"url": file_part_to_data_url(block)}})
            else:
                parts.append({
                    "type": "file",
                    "file": {
                        "filename": block.get("filename", "attachment.pdf"),
                        "file_data": file_part_to_data_url(block),
                    },
                })
        elif block.get("type") == "tool_result":
            tool_content = block.get("content", "")
            if isinstance(tool_content, list):
                tool_content = "\n".join(
                    sub.get("text", "")
                    for sub in tool_content
                    if isinstance(sub, dict) and sub.get("type") == "text"
                )
            tool_messages.append({
                "role": "tool",
                "tool_call_id": block["tool_use_id"],
                "content": str(tool_content),
            })
    return parts, tool_messages


def _to_openai_messages(
    system_prompt: str,
    messages: list[dict],
) -> list[dict]:
    """Convert internal (Anthropic-style) messages to OpenAI chat format."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        role = msg["role"]
        content = msg.get("content", "")

        if role == "assistant":
            if isinstance(content, str):
                out.append({"role": "assistant", "content": content})
                continue

            text_parts: list[str] = []
            tool_calls: list[dict] = []
            for block in content:
                if block.get("type") == "text":
                    text_parts.append(block["text"])
                elif block.get("type") == "tool_use":
                    tool_calls.append({
                        "id": block["id"],
                        "type": "function",
                        "function": {
                            "name": block["name"],
                            "arguments": json.dumps(block["input"]),
                        },
                    })

            oai_msg: dict = {"role": "assistant", "content": "\n".join(text_parts) if text_parts else None}
            if tool_calls:
                oai_msg["tool_calls"] = tool_calls
            out.append(oai_msg)

        elif role == "user":
            if isinstance(content, str):
                out.append({"role": "user", "content": content})
                continue

            parts, tool_messages = _user_parts(content)
            out.extend(tool_messages)
            if parts:
                if all(p["type"] == "text" for p in parts):
                    out.append({"role": "user", "content": "\n".join(p["text"] for p in parts)})
                else:
                    out.append({"role": "user", "content": parts})

        else:
            out.append({"role": role, "content": content if isinstance(content, str) else str(content)})

    return out


def _to_openai_tools(tools: list[dict]) -> list[dict]:
    """Convert internal (Anthropic-style) tool dicts to OpenAI function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t.get("input_schema", {}),
            },
        }
        for t in tools
    ]


class OpenAIProvider:
    """OpenAI and OpenAI-compatible chat completion endpoints.

    Reasoning deltas are read from ``reasoning_content`` (or ``reasoning``) on the
    streamed delta, which compatible servers use for reasoning models.
    """

    def __init__(self, api_key: str, *, base_url: str | None = None):
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

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
        oai_messages = _to_openai_messages(system_prompt, messages)
        oai_tools = _to_openai_tools(tools)

        text_content = ""
        # index -> {"id", "name", "arguments_parts"}
        tool_calls_acc: dict[int, dict] = {}
        finish_reason: str | None = None
        usage = Usage()

        logger.debug(
            f"API request: model={model}, max_tokens={max_tokens}, "
            f"messages={len(oai_messages)}, tools={len(oai_tools)}"
        )
        kwargs: dict = dict(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=oai_messages,
            stream=True,
            stream_options={"include_usage": True},
        )
        if oai_tools:
            kwargs["tools"] = oai_tools

        stream = await self._client.chat.completions.create(**kwargs)

        async for chunk in stream:
            chunk_usage = getattr(chunk, "usage", None)
            if chunk_usage is not None:
                usage = Usage(chunk_usage.prompt_tokens or 0, chunk_usage.completion_tokens or 0)

            choice = chunk.choices[0] if chunk.choices else None
            if choice is None:
                continue

            if choice.finish_reason:
                finish_reason = choice.finish_reason

            delta = choice.delta
            if delta is None:
                continue

            reasoning = getattr(delta, "reasoning_content", None) or getattr(delta, "reasoning", None)
            if reasoning and on_delta is not None:
                await on_delta("reasoning", reasoning)

            if delta.content:
                text_content += delta.content
                if on_delta is not None:
                    await on_delta("text", delta.content)

            # Tool calls arrive incrementally by index
            for tc_delta in delta.tool_calls or []:
                acc = tool_calls_acc.setdefault(tc_delta.index, {"id": "", "name": "", "arguments_parts": []})
                if tc_delta.id:
                    acc["id"] = tc_delta.id
                if tc_delta.function:
                    if tc_delta.function.name:
                        acc["name"] = tc_delta.function.name
                    if tc_delta.function.arguments:
                        acc["arguments_parts"].append(tc_delta.function.arguments)

        stop_reason = _STOP_REASON_MAP.get(finish_reason or "stop", "end_turn")

        assistant_content: list[dict] = []
        tool_use_blocks: list[dict] = []
        if text_content:
            assistant_content.append({"type": "text", "text": text_content})

        for idx in sorted(tool_calls_acc):
            acc = tool_calls_acc[idx]
            raw_args = "".join(acc["arguments_parts"])
            try:
                parsed_input = json.loads(raw_args) if raw_args else {}
            except json.JSONDecodeError:
                # Left as the raw string so argument validation can route it to repair.
                logger.warning(f"Failed to parse tool call arguments: {raw_args[:200]}")
                parsed_input = raw_args
            tool_block = {
                "type": "tool_use",
                "id": acc["id"],
                "name": acc["name"],
                "input": parsed_input,
            }
            assistant_content.append(tool_block)
            tool_use_blocks.append(tool_block)

        logger.debug(
            f"API response: stop_reason={stop_reason}, text_len={len(text_content)}, "
            f"tool_calls={len(tool_use_blocks)}, input_tokens={usage.prompt_tokens}, "
            f"output_tokens={usage.completion_tokens}"
        )
        return ModelTurn(
            message={"role": "assistant", "content": assistant_content},
            tool_use_blocks=tool_use_blocks,
            stop_reason=stop_reason,
            usage=usage,
            model=model,
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
        oai_messages = _to_openai_messages(system_prompt, messages)
        logger.debug(f"Completion request: model={model}, messages={len(oai_messages)}")
        response = await self._client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=oai_messages,
        )
        text = response.choices[0].message.content or ""
        logger.debug(f"Completion response: len={len(text)}")
        return text

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
        response = await self._client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": repair_instructions(prompt)}],
            tools=_to_openai_tools([{"name": name, "description": f"Return the {name}.", "input_schema": schema}]),
            tool_choice={"type": "function", "function": {"name": name}},
        )
        tool_calls = response.choices[0].message.tool_calls or []
        if not tool_calls:
            raise ValueError(f"Model returned no structured {name}")
        return json.loads(tool_calls[0].function.arguments or "{}")
