from typing import Any

from toolchat.tools.read_file_tool import resolve_path

_MAX_ENTRIES = 500


class ListDirectoryTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "list_directory"

    @property
    def description(self) -> str:
        return "List the entries of a directory in the project. Directories are suffixed with '/'."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory path, relative to the project directory. Defaults to the project root.",
                },
            },
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        path = tool_input.get("path") or "."
        directory = resolve_path(path, self._working_directory)
        if not directory.is_dir():
            return f"Error: not a directory: {path}"

        entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
        lines = [f"{p.name}/" if p.is_dir() else p.name for p in entries[:_MAX_ENTRIES]]
        if len(entries) > _MAX_ENTRIES:
            lines.append(f"[{len(entries) - _MAX_ENTRIES} more entries not shown]")
        return "\n".join(lines) if lines else "(empty directory)"
