from typing import Any

from loguru import logger

_SYSTEM_PROMPT = (
    "You are a creative brainstorming partner. Produce a numbered list of distinct, "
    "concrete ideas for the given topic. Favour variety over polish and add one line "
    "of rationale per idea."
)


class BrainstormTool:
    def __init__(self, provider: Any, model: str, *, max_tokens: int = 2048, temperature: float = 1.0):
        self._provider = provider
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def name(self) -> str:
        return "brainstorm"

    @property
    def description(self) -> str:
        return "Generate a list of diverse ideas about a topic, optionally under given constraints."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "topic": {"type": "string", "description": "What to brainstorm about"},
                "count": {"type": "integer", "description": "How many ideas to produce (default 10)"},
                "constraints": {"type": "string", "description": "Optional constraints the ideas must respect"},
            },
            "required": ["topic"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        count = max(1, min(30, int(tool_input.get("count", 10))))
        prompt = f"Topic: {tool_input['topic']}\nNumber of ideas: {count}"
        if tool_input.get("constraints"):
            prompt += f"\nConstraints: {tool_input['constraints']}"

        logger.debug(f"Brainstorm request: model={self._model}, count={count}")
        return await self._provider.create_message(
            self._model,
            self._max_tokens,
            self._temperature,
            [{"role": "user", "content": prompt}],
            system_prompt=_SYSTEM_PROMPT,
        )
