from typing import Any


class SequentialThinkingTool:
    """Scratchpad that lets the model reason in numbered, revisable steps.

    Thoughts only live for the lifetime of the tool instance, which is one request.
    """

    def __init__(self) -> None:
        self._thoughts: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "sequential_thinking"

    @property
    def description(self) -> str:
        return (
            "Think through a problem step by step. Call once per thought; each thought can "
            "build on, question or revise earlier ones. Set nextThoughtNeeded to false when done."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "thought": {"type": "string", "description": "The current thinking step"},
                "thoughtNumber": {"type": "integer", "description": "1-based number of this thought"},
                "totalThoughts": {"type": "integer", "description": "Current estimate of thoughts needed"},
                "nextThoughtNeeded": {"type": "boolean", "description": "Whether another thought follows"},
                "revisesThought": {"type": "integer", "description": "Number of the thought being revised, if any"},
            },
            "required": ["thought", "thoughtNumber", "totalThoughts", "nextThoughtNeeded"],
        }

    @property
    def thoughts(self) -> list[dict[str, Any]]:
        return list(self._thoughts)

    async def execute(self, tool_input: dict[str, Any]) -> str:
        number = int(tool_input["thoughtNumber"])
        total = max(int(tool_input["totalThoughts"]), number)
        self._thoughts.append(
            {
                "number": number,
                "thought": tool_input["thought"],
                "revises": tool_input.get("revisesThought"),
            }
        )
        status = "continue" if tool_input["nextThoughtNeeded"] else "complete"
        revision = f" (revises thought {tool_input['revisesThought']})" if tool_input.get("revisesThought") else ""
        return (
            f"Recorded thought {number}/{total}{revision}. "
            f"Thoughts so far: {len(self._thoughts)}. Status: {status}."
        )
