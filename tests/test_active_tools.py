import asyncio
import unittest

from toolchat.active_tools import ClassifierPolicy, StaticModePolicy, parse_tool_list, tools_used_in_history
from toolchat.capability_registry import CapabilityRegistry
from toolchat.modes import Mode, available_modes, profile_for

from tests.fakes import FakeTool, ScriptedProvider


def _registry() -> CapabilityRegistry:
    registry = CapabilityRegistry()
    registry.register("filesystem", [FakeTool("read_file", "Read a file"), FakeTool("write_file", "Write a file")])
    registry.register("git", [FakeTool("git")])
    registry.register("code", [FakeTool("run_command")])
    registry.register("url", [FakeTool("web_fetch")])
    registry.register("thinking", [FakeTool("sequential_thinking")])
    registry.register("brainstorm", [FakeTool("brainstorm")])
    return registry


class ModeTests(unittest.TestCase):
    def test_unknown_and_missing_modes_are_normal(self) -> None:
        self.assertIs(Mode.NORMAL, Mode.parse(None))
        self.assertIs(Mode.NORMAL, Mode.parse("deepthink"))
        self.assertIs(Mode.CODE, Mode.parse(" Code "))

    def test_available_modes(self) -> None:
        self.assertEqual(["normal", "research", "code", "brainstorm"], available_modes())

    def test_normal_prompt_is_dated_and_override_wins(self) -> None:
        profile = profile_for(Mode.NORMAL)
        self.assertIn("Today's date is", profile.system_prompt())
        self.assertEqual("custom", profile.system_prompt("custom"))
        self.assertEqual("custom", profile_for(Mode.CODE).system_prompt("custom"))


class StaticModePolicyTests(unittest.TestCase):
    def _choose(self, mode: Mode) -> list[str]:
        return asyncio.run(StaticModePolicy(mode).choose_active_tools(_registry(), "anything"))

    def test_normal_is_empty(self) -> None:
        self.assertEqual([], self._choose(Mode.NORMAL))

    def test_code_enables_filesystem_git_and_code(self) -> None:
        self.assertEqual(["read_file", "write_file", "git", "run_command"], self._choose(Mode.CODE))

    def test_research_skips_groups_that_are_not_registered(self) -> None:
        self.assertEqual(["web_fetch"], self._choose(Mode.RESEARCH))

    def test_brainstorm(self) -> None:
        self.assertEqual(["sequential_thinking", "brainstorm"], self._choose(Mode.BRAINSTORM))


class ClassifierPolicyTests(unittest.TestCase):
    def test_known_names_are_kept_and_unknown_discarded(self) -> None:
        provider = ScriptedProvider(completions=["read_file, teleport, git, read_file"])
        policy = ClassifierPolicy(provider, "small-model")

        chosen = asyncio.run(policy.choose_active_tools(_registry(), "fix the bug in a.py"))

        self.assertEqual(["read_file", "git"], chosen)
        call = provider.completion_calls[0]
        self.assertEqual("small-model", call["model"])
        self.assertIn('Name: "read_file"', call["system_prompt"])
        self.assertIn("<task>fix the bug in a.py</task>", call["messages"][0]["content"])

    def test_empty_registry_skips_the_model(self) -> None:
        provider = ScriptedProvider(completions=["read_file"])

        chosen = asyncio.run(ClassifierPolicy(provider, "m").choose_active_tools(CapabilityRegistry(), "x"))

        self.assertEqual([], chosen)
        self.assertEqual([], provider.completion_calls)

    def test_parse_strips_thinking_quotes_and_brackets(self) -> None:
        reply = '<thinking>maybe git?</thinking>["read_file", "web_fetch"]'
        self.assertEqual(["read_file", "web_fetch"], parse_tool_list(reply, _registry()))

    def test_parse_empty_reply(self) -> None:
        self.assertEqual([], parse_tool_list("", _registry()))
        self.assertEqual([], parse_tool_list("[]", _registry()))


class ToolsUsedInHistoryTests(unittest.TestCase):
    def test_collects_registered_tool_names_from_assistant_turns(self) -> None:
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": [
                {"type": "text", "text": "checking"},
                {"type": "tool_use", "id": "1", "name": "git", "input": {}},
                {"type": "tool_use", "id": "2", "name": "retired_tool", "input": {}},
            ]},
            {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "1", "content": "ok"}]},
            {"role": "assistant", "content": [{"type": "tool_use", "id": "3", "name": "git", "input": {}}]},
        ]

        self.assertEqual(["git"], tools_used_in_history(history, _registry()))


if __name__ == "__main__":
    unittest.main()
