from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from toolchat.errors import GenerationError
from toolchat.provider import DeltaCallback, ModelTurn, Usage
from toolchat.schema_check import validate_tool_input
from toolchat.tool import Tool

DEFAULT_MAX_STEPS = 15
_REPAIR_MAX_TOKENS = 2048


@dataclass
class ToolCallOutcome:
    tool_use_id: str
    name: str
    tool_input: Any
    result: str
    is_error: bool = False
    repaired: bool = False

    def as_block(self) -> dict:
        block = {"type": "tool_result", "tool_use_id": self.tool_use_id, "content": self.result}
        if self.is_error:
            block["is_error"] = True
        return block


@dataclass
class StepSummary:
    step: int
    text: str
    reasoning: str
    stop_reason: str
    tool_calls: list[ToolCallOutcome] = field(default_factory=list)

    def describe(self) -> str:
        if not self.tool_calls:
            return ""
        parts = []
        for call in self.tool_calls:
            status = "failed" if call.is_error else "ok"
            repaired = ", repaired" if call.repaired else ""
            parts.append(f"{call.name} ({status}{repaired})")
        return f"Step {self.step}: {', '.join(parts)}"


@dataclass
class TurnResult:
    text: str
    reasoning: str
    response_messages: list[dict]
    usage: Usage
    steps: list[StepSummary]
    finish_reason: str
    sources: list[dict]
    model: str
    duration_ms: float

    def tool_summary(self) -> list[str]:
        return [s.describe() for s in self.steps if s.tool_calls]


class TurnEngine:
    """Runs one turn: model rounds interleaved with tool execution, at most ``max_steps`` rounds.

    A round that requests no tools completes the turn. Reaching ``max_steps`` also
    completes it, with whatever text was produced. Model and transport failures
    are raised as ``GenerationError``; tool failures become error tool results.
    """

    def __init__(
        self,
        *,
        provider: Any,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        tools: list[Tool],
        max_steps: int = DEFAULT_MAX_STEPS,
        max_tool_result_chars: int = 40_000,
        repair_model: str | None = None,
        on_delta: DeltaCallback | None = None,
        on_step: Callable[[StepSummary], Awaitable[None]] | None = None,
        on_finish: Callable[[TurnResult], Awaitable[None]] | None = None,
    ) -> None:
        self._provider = provider
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt
        self._tool_map: dict[str, Tool] = {t.name: t for t in tools}
        self._converted_tools = provider.convert_tools(tools) if tools else []
        self._max_steps = max(1, max_steps)
        self._max_tool_result_chars = max_tool_result_chars
        self._repair_model = repair_model or model
        self._on_delta = on_delta
        self._on_step = on_step
        self._on_finish = on_finish
        self._step_reasoning: list[str] = []

    async def run(self, messages: list[dict]) -> TurnResult:
        history = list(messages)
        response_messages: list[dict] = []
        steps: list[StepSummary] = []
        sources: list[dict] = []
        usage = Usage()
        model_id = self._model
        finish_reason = "stop"
        start = time.perf_counter()

        for step in range(1, self._max_steps + 1):
            turn = await self._generate(history)
            usage.add(turn.usage)
            sources.extend(s for s in turn.sources if s not in sources)
            model_id = turn.model or model_id

            history.append(turn.message)
            response_messages.append(turn.message)

            outcomes: list[ToolCallOutcome] = []
            if turn.tool_use_blocks:
                outcomes = await self.execute_tools(turn.tool_use_blocks)
                tool_results = {"role": "user", "content": [o.as_block() for o in outcomes]}
                history.append(tool_results)
                response_messages.append(tool_results)

            summary = StepSummary(
                step=step,
                text=_text_of(turn.message),
                reasoning="".join(self._step_reasoning),
                stop_reason=turn.stop_reason,
                tool_calls=outcomes,
            )
            steps.append(summary)
            if self._on_step is not None:
                await self._on_step(summary)

            if not turn.tool_use_blocks:
                finish_reason = "max_tokens" if turn.stop_reason == "max_tokens" else "stop"
                break
        else:
            finish_reason = "max_steps"
            logger.warning(f"Turn stopped after reaching the step limit ({self._max_steps})")

        result = TurnResult(
            text="\n\n".join(s.text for s in steps if s.text),
            reasoning="\n\n".join(s.reasoning for s in steps if s.reasoning),
            response_messages=response_messages,
            usage=usage,
            steps=steps,
            finish_reason=finish_reason,
            sources=sources,
            model=model_id,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        logger.info(
            f"Turn completed: steps={len(steps)}, finish_reason={finish_reason}, "
            f"prompt_tokens={usage.prompt_tokens}, completion_tokens={usage.completion_tokens}"
        )
        if self._on_finish is not None:
            await self._on_finish(result)
        return result

    async def _generate(self, history: list[dict]) -> ModelTurn:
        self._step_reasoning = []
        try:
            return await self._provider.stream_turn(
                self._model,
                self._max_tokens,
                self._temperature,
                self._system_prompt,
                history,
                self._converted_tools,
                on_delta=self._collect_delta,
            )
        except GenerationError:
            raise
        except Exception as ex:
            logger.error(f"Model call failed: {type(ex).__name__}: {ex}")
            raise GenerationError(f"Model call failed: {ex}") from ex

    async def _collect_delta(self, kind: str, text: str) -> None:
        if kind == "reasoning":
            self._step_reasoning.append(text)
        if self._on_delta is not None:
            await self._on_delta(kind, text)

    async def execute_tools(self, tool_use_blocks: list[dict]) -> list[ToolCallOutcome]:
        return list(await asyncio.gather(*(self._run_one(b) for b in tool_use_blocks)))

    async def _run_one(self, block: dict) -> ToolCallOutcome:
        tool_name = block["name"]
        tool_use_id = block["id"]
        tool_input = block["input"]
        tool = self._tool_map.get(tool_name)

        if tool is None:
            logger.warning(f'Model requested unknown or inactive tool "{tool_name}"')
            if not isinstance(tool_input, dict):
                block["input"] = {}
            return ToolCallOutcome(
                tool_use_id, tool_name, tool_input, f'Error: unknown tool "{tool_name}"', is_error=True
            )

        repaired = False
        problems = validate_tool_input(tool_input, tool.input_schema)
        if problems:
            repaired = True
            corrected = await self._repair_tool_input(tool, tool_input, problems)
            remaining = validate_tool_input(corrected, tool.input_schema) if corrected is not None else problems
            if remaining:
                if not isinstance(tool_input, dict):
                    block["input"] = {}
                return ToolCallOutcome(
                    tool_use_id,
                    tool_name,
                    tool_input,
                    f'Error: invalid arguments for tool "{tool_name}": {"; ".join(remaining)}',
                    is_error=True,
                    repaired=True,
                )
            tool_input = corrected
            block["input"] = corrected

        try:
            result = await tool.execute(tool_input)
        except Exception as ex:
            logger.warning(f'Tool "{tool_name}" raised {type(ex).__name__}: {ex}')
            return ToolCallOutcome(
                tool_use_id,
                tool_name,
                tool_input,
                f'Error executing tool "{tool_name}": {ex}',
                is_error=True,
                repaired=repaired,
            )

        return ToolCallOutcome(
            tool_use_id, tool_name, tool_input, self._truncate_tool_result(result, tool_name), repaired=repaired
        )

    async def _repair_tool_input(self, tool: Tool, tool_input: Any, problems: list[str]) -> dict | None:
        """One structured-generation call asking for arguments that satisfy the tool's schema."""
        logger.warning(f'Repairing arguments for tool "{tool.name}": {"; ".join(problems)}')
        prompt = (
            f'The model tried to call the tool "{tool.name}" with invalid arguments.\n\n'
            f"Arguments:\n{json.dumps(tool_input, default=str)}\n\n"
            f"Error:\n{'; '.join(problems)}\n\n"
            f"Tool description: {tool.description}\n"
            f"Input schema:\n{json.dumps(tool.input_schema, indent=2)}\n\n"
            "Return corrected arguments for this tool."
        )
        try:
            return await self._provider.generate_object(
                self._repair_model,
                _REPAIR_MAX_TOKENS,
                prompt,
                tool.input_schema,
                name="corrected_arguments",
            )
        except Exception as ex:
            logger.warning(f'Argument repair for "{tool.name}" failed: {ex}')
            return None

    def _truncate_tool_result(self, result: str, tool_name: str) -> str:
        if self._max_tool_result_chars <= 0 or len(result) <= self._max_tool_result_chars:
            return result

        original_length = len(result)
        logger.warning(
            f"{tool_name} output truncated from {original_length:,} "
            f"to {self._max_tool_result_chars:,} chars"
        )
        return result[: self._max_tool_result_chars] + (
            f"\n\n[OUTPUT TRUNCATED: Showing {self._max_tool_result_chars:,} "
            f"of {original_length:,} characters from {tool_name}]"
        )


def _text_of(message: dict) -> str:
    content = message.get("content", "")
    if isinstance(content, str):
        return content
    return "".join(b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text")
