import asyncio
import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from toolchat.tools.append_file_tool import AppendFileTool
from toolchat.tools.list_directory_tool import ListDirectoryTool
from toolchat.tools.read_file_tool import ReadFileTool, resolve_path
from toolchat.tools.write_file_tool import WriteFileTool

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class FileToolTests(unittest.TestCase):
    def setUp(self) -> None:
        self._dir = PROJECT_ROOT / ".test-artifacts" / f"file-tools-{uuid4().hex}"
        self._dir.mkdir(parents=True)
        self._wd = str(self._dir)

    def tearDown(self) -> None:
        shutil.rmtree(self._dir, ignore_errors=True)

    def test_relative_paths_resolve_against_working_directory(self) -> None:
        self.assertEqual(self._dir / "a.txt", resolve_path("a.txt", self._wd))
        self.assertEqual(Path("/abs/a.txt"), resolve_path("/abs/a.txt", self._wd))

    def test_write_append_read(self) -> None:
        wrote = asyncio.run(WriteFileTool(self._wd).execute({"path": "notes/n.md", "content": "one\n"}))
        appended = asyncio.run(AppendFileTool(self._wd).execute({"path": "notes/n.md", "content": "two\n"}))
        read = asyncio.run(ReadFileTool(self._wd).execute({"path": "notes/n.md"}))

        self.assertEqual("Successfully wrote to notes/n.md", wrote)
        self.assertEqual("Successfully appended to notes/n.md", appended)
        self.assertEqual("one\ntwo\n", read)

    def test_append_requires_existing_file(self) -> None:
        result = asyncio.run(AppendFileTool(self._wd).execute({"path": "missing.md", "content": "x"}))
        self.assertTrue(result.startswith("Error: file does not exist"))

    def test_read_missing_file_reports_error(self) -> None:
        result = asyncio.run(ReadFileTool(self._wd).execute({"path": "missing.md"}))
        self.assertTrue(result.startswith("Error reading file:"))

    def test_list_directory_puts_folders_first(self) -> None:
        (self._dir / "b.txt").write_text("b", encoding="utf-8")
        (self._dir / "sub").mkdir()
        listing = asyncio.run(ListDirectoryTool(self._wd).execute({}))
        self.assertEqual("sub/\nb.txt", listing)

        missing = asyncio.run(ListDirectoryTool(self._wd).execute({"path": "nope"}))
        self.assertEqual("Error: not a directory: nope", missing)


if __name__ == "__main__":
    unittest.main()
