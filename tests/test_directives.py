import asyncio
import shutil
import unittest
from pathlib import Path
from uuid import uuid4

import httpx

from toolchat.directives import COMMIT_INSTRUCTION, DirectivePreprocessor, language_for
from toolchat.errors import DirectiveError
from toolchat.tools.web.web_fetch_tool import DEFAULT_MAX_CHARS, MAX_RESPONSE_BYTES

PROJECT_ROOT = Path(__file__).resolve().parents[1]

_PAGE = """<html><head><title>T</title><script>var x = 1;</script></head>
<body><h1>Heading</h1><p>Body text</p><script>alert('x')</script></body></html>"""


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/page":
        return httpx.Response(200, text=_PAGE, headers={"content-type": "text/html"})
    if request.url.path == "/doc.pdf":
        return httpx.Response(200, content=b"%PDF-1.4 fake", headers={"content-type": "application/pdf"})
    if request.url.path == "/huge":
        return httpx.Response(200, content=b"x" * (MAX_RESPONSE_BYTES + 1), headers={"content-type": "text/plain"})
    if request.url.path == "/long":
        return httpx.Response(200, text="y" * (DEFAULT_MAX_CHARS + 10), headers={"content-type": "text/plain"})
    if request.url.path == "/down":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404, text="not found")


class DirectivePreprocessorTests(unittest.TestCase):
    def setUp(self) -> None:
        self._base = PROJECT_ROOT / ".test-artifacts" / f"directives-{uuid4().hex}"
        (self._base / "src").mkdir(parents=True)
        (self._base / "prompts").mkdir()
        (self._base / "myproject").mkdir()
        (self._base / "a.ts").write_text("hello", encoding="utf-8")
        (self._base / "notes.unknownext").write_text("raw", encoding="utf-8")
        (self._base / "src" / "a.md").write_text("# A", encoding="utf-8")
        (self._base / "src" / "b.md").write_text("# B", encoding="utf-8")
        (self._base / "prompts" / "review.md").write_text("Review this code.", encoding="utf-8")
        self._pre = DirectivePreprocessor(str(self._base), transport=httpx.MockTransport(_handler))

    def tearDown(self) -> None:
        shutil.rmtree(self._base, ignore_errors=True)

    def _process(self, raw: str):
        return asyncio.run(self._pre.process(raw))

    def test_plain_input_is_trimmed_and_not_returned(self) -> None:
        result = self._process("  hello there \n")
        self.assertEqual("hello there", result.processed_prompt)
        self.assertFalse(result.return_prompt)
        self.assertEqual([], result.attachments)
        self.assertIsNone(result.resolved_project_dir)

    def test_file_is_fenced_with_language(self) -> None:
        result = self._process("@file a.ts")
        self.assertTrue(result.return_prompt)
        self.assertIn("``` typescript\nhello\n```", result.processed_prompt)
        self.assertIn("File: a.ts", result.processed_prompt)

    def test_unknown_extension_uses_extension_as_tag(self) -> None:
        self.assertEqual("unknownext", language_for("notes.unknownext"))
        self.assertEqual("yaml", language_for("ci.yml"))

    def test_missing_file_becomes_inline_error(self) -> None:
        result = self._process("look\n@file missing.py\nthanks")
        self.assertTrue(result.return_prompt)
        lines = result.processed_prompt.split("\n")
        self.assertEqual("look", lines[0])
        self.assertTrue(lines[1].startswith("Error: could not read file missing.py"))
        self.assertEqual("thanks", lines[-1])

    def test_dir_lists_entries(self) -> None:
        result = self._process("@dir ./src")
        self.assertTrue(result.return_prompt)
        self.assertIn("File tree:", result.processed_prompt)
        self.assertIn("a.md", result.processed_prompt)
        self.assertIn("b.md", result.processed_prompt)

    def test_missing_dir_becomes_inline_error(self) -> None:
        result = self._process("@dir nowhere")
        self.assertTrue(result.processed_prompt.startswith("Error: could not list directory nowhere"))

    def test_files_expands_globs(self) -> None:
        result = self._process("@files src/*.md a.ts")
        self.assertIn("File: src/a.md\n``` markdown\n# A\n```", result.processed_prompt)
        self.assertIn("File: src/b.md", result.processed_prompt)
        self.assertIn("``` typescript\nhello", result.processed_prompt)

    def test_files_without_matches_reports_inline(self) -> None:
        result = self._process("@files src/*.rs")
        self.assertEqual("Error: no files match src/*.rs", result.processed_prompt)

    def test_list_prompts_and_prompt(self) -> None:
        listed = self._process("@list-prompts")
        self.assertEqual("Prompts:\nreview", listed.processed_prompt)
        prompt = self._process("@prompt review")
        self.assertEqual("Review this code.", prompt.processed_prompt)
        self.assertTrue(prompt.return_prompt)

    def test_missing_prompt_is_fatal(self) -> None:
        with self.assertRaises(DirectiveError):
            self._process("@prompt nope")

    def test_url_body_is_sanitized(self) -> None:
        result = self._process("@url https://example.com/page")
        self.assertTrue(result.return_prompt)
        self.assertIn("URL: https://example.com/page", result.processed_prompt)
        self.assertIn("Body text", result.processed_prompt)
        self.assertNotIn("alert", result.processed_prompt)
        self.assertNotIn("var x", result.processed_prompt)

    def test_url_failures_are_inline(self) -> None:
        status = self._process("@url https://example.com/missing")
        self.assertIn("Status: 404", status.processed_prompt)
        refused = self._process("@url https://example.com/down")
        self.assertIn("Error: connection refused", refused.processed_prompt)

    def test_url_body_size_is_capped(self) -> None:
        huge = self._process("@url https://example.com/huge")
        self.assertIn("Error: Response too large", huge.processed_prompt)
        self.assertNotIn("xxxx", huge.processed_prompt)

        truncated = self._process("@url https://example.com/long")
        self.assertIn(f"[Content truncated at {DEFAULT_MAX_CHARS:,} characters]", truncated.processed_prompt)
        self.assertNotIn("y" * (DEFAULT_MAX_CHARS + 1), truncated.processed_prompt)

    def test_projectdir_is_resolved_without_echo(self) -> None:
        result = self._process("@projectdir myproject\nfix the tests")
        self.assertFalse(result.return_prompt)
        self.assertEqual(str((self._base / "myproject").resolve()), result.resolved_project_dir)
        self.assertEqual("fix the tests", result.processed_prompt)

    def test_invalid_projectdir_is_fatal(self) -> None:
        with self.assertRaises(DirectiveError):
            self._process("@projectdir ghost")

    def test_projectdir_cannot_leave_base_directory(self) -> None:
        outside = PROJECT_ROOT / ".test-artifacts" / f"outside-{uuid4().hex}"
        outside.mkdir(parents=True)
        try:
            with self.assertRaises(DirectiveError):
                self._process(f"@projectdir {outside}\nhi")
            with self.assertRaises(DirectiveError):
                self._process("@projectdir ..\nhi")
            with self.assertRaises(DirectiveError):
                self._process("@projectdir myproject/../..\nhi")
        finally:
            shutil.rmtree(outside, ignore_errors=True)

    def test_absolute_projectdir_is_taken_under_base(self) -> None:
        result = self._process("@projectdir /myproject\nhi")
        self.assertEqual(str((self._base / "myproject").resolve()), result.resolved_project_dir)

    def test_pdf_becomes_attachment(self) -> None:
        result = self._process("summarize this\n@pdf https://example.com/doc.pdf")
        self.assertFalse(result.return_prompt)
        self.assertEqual("summarize this", result.processed_prompt)
        self.assertEqual(1, len(result.attachments))
        self.assertEqual(b"%PDF-1.4 fake", result.attachments[0].data)
        self.assertEqual("application/pdf", result.attachments[0].mime_type)

    def test_pdf_fetch_failure_propagates(self) -> None:
        with self.assertRaises(DirectiveError) as ctx:
            self._process("@pdf https://example.com/gone.pdf")
        self.assertIsInstance(ctx.exception.__cause__, httpx.HTTPStatusError)

    def test_commit_substitutes_instruction(self) -> None:
        result = self._process("@commit")
        self.assertEqual(COMMIT_INSTRUCTION, result.processed_prompt)
        self.assertFalse(result.return_prompt)

    def test_side_effect_directives_ignored_when_content_directive_present(self) -> None:
        result = self._process("@file a.ts\n@projectdir ghost")
        self.assertTrue(result.return_prompt)
        self.assertIsNone(result.resolved_project_dir)
        self.assertIn("@projectdir ghost", result.processed_prompt)

    def test_directives_are_case_sensitive_line_prefixes(self) -> None:
        result = self._process("@FILE a.ts\nsee @file a.ts")
        self.assertFalse(result.return_prompt)
        self.assertEqual("@FILE a.ts\nsee @file a.ts", result.processed_prompt)


if __name__ == "__main__":
    unittest.main()
