import asyncio
import unittest

from toolchat.errors import GenerationError
from toolchat.turn_engine import TurnEngine

from tests.fakes import FakeTool, ScriptedProvider, text_turn, tool_turn

_PATH_SCHEMA = {
    "type": "object",
    "properties": {"path": {"type": "string"}},
    "required": ["path"],
}


def _engine(provider, tools=None, **kwargs) -> TurnEngine:
    return TurnEngine(
        provider=provider,
        model="m",
        max_tokens=1000,
        temperature=0.3,
        system_prompt="sys",
        tools=tools or [],
        **kwargs,
    )


def _tool_results(result) -> list[dict]:
    return [
        block
        for msg in result.response_messages
        if msg["role"] == "user"
        for block in msg["content"]
    ]


class TurnEngineTests(unittest.TestCase):
    def test_plain_reply_is_a_single_model_call(self) -> None:
        provider = ScriptedProvider([text_turn("Hello!")])

        result = asyncio.run(_engine(provider).run([{"role": "user", "content": "hi"}]))

        self.assertEqual(1, len(provider.stream_calls))
        self.assertEqual([], provider.stream_calls[0]["tools"])
        self.assertEqual("Hello!", result.text)
        self.assertEqual("stop", result.finish_reason)
        self.assertEqual(1, len(result.response_messages))

    def test_tool_round_trip_then_answer(self) -> None:
        read_file = FakeTool("read_file", input_schema=_PATH_SCHEMA, result="contents")
        provider = ScriptedProvider([
            tool_turn(("t1", "read_file", {"path": "a.txt"}), text="Reading."),
            text_turn("It says contents."),
        ])

        result = asyncio.run(_engine(provider, [read_file]).run([{"role": "user", "content": "read a.txt"}]))

        self.assertEqual([{"path": "a.txt"}], read_file.calls)
        self.assertEqual(2, len(provider.stream_calls))
        self.assertEqual("Reading.\n\nIt says contents.", result.text)
        self.assertEqual([{"type": "tool_result", "tool_use_id": "t1", "content": "contents"}], _tool_results(result))
        self.assertEqual(20, result.usage.prompt_tokens)
        self.assertEqual(10, result.usage.completion_tokens)

    def test_never_exceeds_max_steps(self) -> None:
        tool = FakeTool("loop")
        provider = ScriptedProvider([tool_turn((f"t{i}", "loop", {})) for i in range(10)])

        result = asyncio.run(_engine(provider, [tool], max_steps=3).run([{"role": "user", "content": "go"}]))

        self.assertEqual(3, len(provider.stream_calls))
        self.assertEqual(3, len(result.steps))
        self.assertEqual("max_steps", result.finish_reason)

    def test_unknown_tool_fails_without_repair(self) -> None:
        provider = ScriptedProvider([
            tool_turn(("t1", "delete_everything", {"path": 1})),
            text_turn("Sorry."),
        ])

        result = asyncio.run(_engine(provider, [FakeTool("read_file")]).run([{"role": "user", "content": "x"}]))

        self.assertEqual([], provider.repair_calls)
        block = _tool_results(result)[0]
        self.assertTrue(block["is_error"])
        self.assertIn("unknown tool", block["content"])
        self.assertEqual("Sorry.", result.text)

    def test_inactive_tool_is_treated_as_unknown(self) -> None:
        provider = ScriptedProvider([tool_turn(("t1", "git", {})), text_turn("ok")])

        result = asyncio.run(_engine(provider, []).run([{"role": "user", "content": "x"}]))

        self.assertTrue(_tool_results(result)[0]["is_error"])
        self.assertEqual([], provider.repair_calls)

    def test_invalid_arguments_are_repaired_once(self) -> None:
        read_file = FakeTool("read_file", input_schema=_PATH_SCHEMA, result="fixed contents")
        provider = ScriptedProvider(
            [tool_turn(("t1", "read_file", {"file": "a.txt"})), text_turn("done")],
            repairs=[{"path": "a.txt"}],
        )

        result = asyncio.run(
            _engine(provider, [read_file], repair_model="small").run([{"role": "user", "content": "x"}])
        )

        self.assertEqual(1, len(provider.repair_calls))
        repair = provider.repair_calls[0]
        self.assertEqual("small", repair["model"])
        self.assertEqual(_PATH_SCHEMA, repair["schema"])
        self.assertIn('"file": "a.txt"', repair["prompt"])
        self.assertIn("path: missing required property", repair["prompt"])
        self.assertEqual([{"path": "a.txt"}], read_file.calls)
        self.assertEqual("fixed contents", _tool_results(result)[0]["content"])
        self.assertEqual({"path": "a.txt"}, result.response_messages[0]["content"][0]["input"])
        self.assertTrue(result.steps[0].tool_calls[0].repaired)

    def test_failed_repair_marks_only_that_step_failed(self) -> None:
        read_file = FakeTool("read_file", input_schema=_PATH_SCHEMA)
        provider = ScriptedProvider(
            [tool_turn(("t1", "read_file", {"path": 5})), text_turn("carrying on")],
            repairs=[{"path": 6}],
        )

        result = asyncio.run(_engine(provider, [read_file]).run([{"role": "user", "content": "x"}]))

        self.assertEqual(1, len(provider.repair_calls))
        self.assertEqual([], read_file.calls)
        self.assertTrue(_tool_results(result)[0]["is_error"])
        self.assertEqual(2, len(provider.stream_calls))
        self.assertEqual("carrying on", result.text)

    def test_repair_call_error_is_a_failed_repair(self) -> None:
        read_file = FakeTool("read_file", input_schema=_PATH_SCHEMA)
        provider = ScriptedProvider(
            [tool_turn(("t1", "read_file", '{"path": ')), text_turn("ok")],
            repairs=[RuntimeError("no structured output")],
        )

        result = asyncio.run(_engine(provider, [read_file]).run([{"role": "user", "content": "x"}]))

        self.assertTrue(_tool_results(result)[0]["is_error"])
        self.assertEqual({}, result.response_messages[0]["content"][0]["input"])

    def test_tool_exception_becomes_error_result(self) -> None:
        class Exploding(FakeTool):
            async def execute(self, tool_input):
                raise OSError("disk gone")

        provider = ScriptedProvider([tool_turn(("t1", "boom", {})), text_turn("ok")])

        result = asyncio.run(_engine(provider, [Exploding("boom")]).run([{"role": "user", "content": "x"}]))

        block = _tool_results(result)[0]
        self.assertTrue(block["is_error"])
        self.assertIn("disk gone", block["content"])

    def test_long_tool_output_is_truncated(self) -> None:
        tool = FakeTool("dump", result="x" * 500)
        provider = ScriptedProvider([tool_turn(("t1", "dump", {})), text_turn("ok")])

        result = asyncio.run(
            _engine(provider, [tool], max_tool_result_chars=100).run([{"role": "user", "content": "x"}])
        )

        content = _tool_results(result)[0]["content"]
        self.assertTrue(content.startswith("x" * 100))
        self.assertIn("OUTPUT TRUNCATED", content)

    def test_provider_failure_raises_generation_error_and_skips_finish(self) -> None:
        finished = []

        async def on_finish(result) -> None:
            finished.append(result)

        provider = ScriptedProvider(fail_with=ConnectionError("reset"))

        with self.assertRaises(GenerationError):
            asyncio.run(_engine(provider, on_finish=on_finish).run([{"role": "user", "content": "x"}]))
        self.assertEqual([], finished)

    def test_callbacks_receive_deltas_steps_and_finish(self) -> None:
        deltas, steps, finished = [], [], []

        async def on_delta(kind, text):
            deltas.append((kind, text))

        async def on_step(step):
            steps.append(step)

        async def on_finish(result):
            finished.append(result)

        provider = ScriptedProvider([
            tool_turn(("t1", "note", {}), reasoning="plan"),
            text_turn("answer"),
        ])

        result = asyncio.run(
            _engine(provider, [FakeTool("note")], on_delta=on_delta, on_step=on_step, on_finish=on_finish).run(
                [{"role": "user", "content": "x"}]
            )
        )

        self.assertEqual([("reasoning", "plan"), ("text", "answer")], deltas)
        self.assertEqual(2, len(steps))
        self.assertEqual("Step 1: note (ok)", steps[0].describe())
        self.assertEqual([result], finished)
        self.assertEqual("plan", result.reasoning)


if __name__ == "__main__":
    unittest.main()
