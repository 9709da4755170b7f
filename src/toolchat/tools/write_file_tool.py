from typing import Any

from toolchat.tools.read_file_tool import resolve_path


class WriteFileTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file in the project, creating it (and parent folders) if needed."

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
                    "description": "The full content to write",
                },
            },
            "required": ["path", "content"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        path = tool_input["path"]
        try:
            file_path = resolve_path(path, self._working_directory)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(tool_input["content"], encoding="utf-8")
            return f"Successfully wrote to {path}"
        except Exception as ex:
            return f"Error writing file: {ex}"
