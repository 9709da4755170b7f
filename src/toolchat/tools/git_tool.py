import asyncio
import subprocess
from typing import Any

from toolchat.tools.run_command_tool import communicate

_READ_ONLY_SUBCOMMANDS = ("status", "diff", "log", "show", "branch")


class GitTool:
    def __init__(self, working_directory: str | None = None):
        self._cwd = working_directory

    @property
    def name(self) -> str:
        return "git"

    @property
    def description(self) -> str:
        return (
            "Run a read-only git command in the project repository. "
            f"Allowed subcommands: {', '.join(_READ_ONLY_SUBCOMMANDS)}."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "subcommand": {
                    "type": "string",
                    "enum": list(_READ_ONLY_SUBCOMMANDS),
                    "description": "The git subcommand to run",
                },
                "args": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Extra arguments, e.g. [\"--stat\"] or [\"-n\", \"5\"]",
                },
            },
            "required": ["subcommand"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        subcommand = tool_input["subcommand"]
        if subcommand not in _READ_ONLY_SUBCOMMANDS:
            return f"Error: git subcommand not allowed: {subcommand}"
        args = [str(a) for a in tool_input.get("args") or []]

        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                "--no-pager",
                subcommand,
                *args,
                stdin=subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
            result = await communicate(proc)
        except Exception as ex:
            return f"Error running git: {ex}"

        if result is None:
            return "[git timed out]"
        output, returncode = result
        if returncode != 0:
            return f"{output}\n[exit code {returncode}]"
        return output.rstrip() or "(no output)"
