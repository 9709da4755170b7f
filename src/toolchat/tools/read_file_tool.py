import os
from pathlib import Path
from typing import Any


class ReadFileTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the contents of a file in the project and return it as text. "
            "Supports plain text files and .docx documents."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file, relative to the project directory or absolute",
                },
            },
            "required": ["path"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        file_path = resolve_path(tool_input["path"], self._working_directory)
        try:
            if file_path.suffix.lower() == ".docx":
                return extract_docx_text(file_path)
            return file_path.read_text(encoding="utf-8")
        except Exception as ex:
            return f"Error reading file: {ex}"


def resolve_path(path: str, working_directory: str | None) -> Path:
    candidate = Path(path).expanduser()
    if not candidate.is_absolute() and working_directory:
        candidate = Path(working_directory) / candidate
    return candidate


def extract_docx_text(file_path: Path) -> str:
    from docx import Document

    doc = Document(str(file_path))
    return os.linesep.join(p.text for p in doc.paragraphs)
