import asyncio
import unittest

from tests.fakes import ScriptedProvider
from toolchat.tools.brainstorm_tool import BrainstormTool
from toolchat.tools.sequential_thinking_tool import SequentialThinkingTool


class SequentialThinkingToolTests(unittest.TestCase):
    def test_thoughts_accumulate(self) -> None:
        tool = SequentialThinkingTool()
        first = asyncio.run(tool.execute(
            {"thought": "a", "thoughtNumber": 1, "totalThoughts": 2, "nextThoughtNeeded": True}
        ))
        second = asyncio.run(tool.execute(
            {"thought": "b", "thoughtNumber": 2, "totalThoughts": 2, "nextThoughtNeeded": False, "revisesThought": 1}
        ))

        self.assertEqual("Recorded thought 1/2. Thoughts so far: 1. Status: continue.", first)
        self.assertIn("(revises thought 1)", second)
        self.assertIn("Status: complete.", second)
        self.assertEqual(["a", "b"], [t["thought"] for t in tool.thoughts])


class BrainstormToolTests(unittest.TestCase):
    def test_prompt_carries_topic_count_and_constraints(self) -> None:
        provider = ScriptedProvider(completions=["1. idea"])
        tool = BrainstormTool(provider, "small-model")

        result = asyncio.run(tool.execute({"topic": "names", "count": 99, "constraints": "short"}))

        self.assertEqual("1. idea", result)
        call = provider.completion_calls[0]
        self.assertEqual("small-model", call["model"])
        self.assertEqual("Topic: names\nNumber of ideas: 30\nConstraints: short", call["messages"][0]["content"])


if __name__ == "__main__":
    unittest.main()
