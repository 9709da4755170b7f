import asyncio
import platform
import subprocess
from typing import Any

_IS_WINDOWS = platform.system() == "Windows"
_TIMEOUT_SECONDS = 30


async def communicate(proc: asyncio.subprocess.Process, timeout: float = _TIMEOUT_SECONDS) -> tuple[str, int] | None:
    """Collect combined stdout/stderr and the exit code, or None when the process timed out."""
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        try:
            await asyncio.wait_for(proc.communicate(), timeout=5)
        except (asyncio.TimeoutError, ProcessLookupError):
            pass
        return None

    output = stdout.decode(errors="replace") + stderr.decode(errors="replace")
    return output, proc.returncode


class RunCommandTool:
    def __init__(self, working_directory: str | None = None):
        self._cwd = working_directory

    @property
    def name(self) -> str:
        return "run_command"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command in the project directory and return its output "
            f"(stdout + stderr). Commands are stopped after {_TIMEOUT_SECONDS} seconds."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                },
            },
            "required": ["command"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        command = tool_input["command"]

        try:
            proc = await asyncio.create_subprocess_shell(
                f"cmd.exe /c {command}" if _IS_WINDOWS else command,
                stdin=subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
            result = await communicate(proc)
        except Exception as ex:
            return f"Error executing command: {ex}"

        if result is None:
            return f"[timed out after {_TIMEOUT_SECONDS}s]"

        output, returncode = result
        if returncode != 0:
            return f"{output}\n[exit code {returncode}]"
        return output.rstrip()
