import asyncio
import signal
import sys
from contextlib import aclosing

from dotenv import load_dotenv
from loguru import logger

from toolchat import events
from toolchat.app_config import load_json_config, parse_app_config, resolve_runtime_env
from toolchat.bootstrap import bootstrap_runtime
from toolchat.chat_service import ChatService
from toolchat.errors import ToolchatError
from toolchat.modes import Mode
from toolchat.spinner import Spinner

_HELP = """\
Commands:
  /mode [name]   show or switch the mode ({modes})
  /new           start a new chat session
  /history [n]   list recent interactions (page n)
  /help          show this help
  exit, quit     leave
Directives such as @file, @dir, @url, @projectdir and @pdf are expanded before sending."""


class Repl:
    def __init__(self, service: ChatService):
        self._service = service
        self._mode = Mode.NORMAL
        self._session_id: str | None = None

    def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when ``line`` is not one."""
        command, _, arg = line.partition(" ")
        arg = arg.strip()
        if command == "/mode":
            if arg:
                self._mode = Mode.parse(arg)
            print(f"Mode: {self._mode.value}")
        elif command == "/new":
            self._session_id = None
            print("Started a new session.")
        elif command == "/history":
            page = self._service.history(int(arg) if arg.isdigit() else 1)
            for item in page["interactions"]:
                print(f"  {item['id']}  {item['preview']}")
            meta = page["pagination"]
            print(f"Page {meta['page']} of {meta['totalPages']} ({meta['totalItems']} interactions)")
        elif command == "/help":
            print(_HELP.format(modes=", ".join(self._service.available_modes())))
        else:
            return False
        return True

    async def send(self, message: str) -> None:
        payload = {"message": message, "mode": self._mode.value, "sessionId": self._session_id}
        try:
            token = self._service.admit(payload)
        except ToolchatError as ex:
            print(f"[error] {ex}")
            return

        task = asyncio.create_task(self._consume(token))
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, task.cancel)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            handler_installed = False
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            print("\n[cancelled]")
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

    async def _consume(self, token: str) -> None:
        spinner = Spinner()
        spinner.start()
        try:
            async with aclosing(self._service.stream(token)) as stream:
                async for event in stream:
                    spinner.stop()
                    if event.event == events.MESSAGE:
                        print(event.data, end="", flush=True)
                    elif event.event == events.UPDATE_PROMPT:
                        print(event.data)
                    elif event.event == events.ERROR:
                        print(f"\n[error] {event.data}")
                    elif event.event == events.COMPLETE:
                        self._session_id = event.data.get("sessionId") or self._session_id
                        for source in event.data.get("sources") or []:
                            print(f"\n  source: {source.get('title') or ''} {source.get('url', '')}".rstrip())
            print("\n")
        finally:
            spinner.stop()


async def main() -> None:
    load_dotenv()

    config = load_json_config()
    provider_name = str(config.get("Provider", "anthropic")).strip().lower()
    env = resolve_runtime_env(provider_name)
    app = parse_app_config(config, env)

    if not env.provider_api_key:
        logger.error(f"{env.provider_env_var} environment variable is required.")
        print(f"{env.provider_env_var} environment variable is required.", file=sys.stderr)
        sys.exit(1)

    try:
        runtime = await bootstrap_runtime(app, env)
    except ToolchatError as ex:
        print(f"Startup failed: {ex}", file=sys.stderr)
        sys.exit(1)
    repl = Repl(runtime.service)

    print("toolchat (type 'exit' to quit, '/help' for commands)")
    print(f"Model: {app.model} ({app.provider_name}), tool policy: {app.active_tool_policy}")
    if app.base_dir:
        print(f"Base directory: {app.base_dir}")
    if runtime.mcp_tools:
        print(f"MCP tools: {', '.join(t.name for t in runtime.mcp_tools)}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue
            if trimmed.startswith("/") and repl.handle_command(trimmed):
                continue

            print()
            await repl.send(user_input)
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
