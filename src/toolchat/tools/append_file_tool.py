from typing import Any

from toolchat.tools.read_file_tool import resolve_path


class AppendFileTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "append_file"

    @property
    def description(self) -> str:
        return (
            "Append content to the end of an existing file. "
            "Create the file with write_file first, then append further sections."
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
                "content": {
                    "type": "string",
                    "description": "The content to append",
                },
            },
            "required": ["path", "content"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        path = tool_input["path"]
        try:
            file_path = resolve_path(path, self._working_directory)
            if not file_path.exists():
                return f"Error: file does not exist: {path}. Use write_file to create it first."
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(tool_input["content"])
            return f"Successfully appended to {path}"
        except Exception as ex:
            return f"Error appending to file: {ex}"
