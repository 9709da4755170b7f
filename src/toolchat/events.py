from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

MESSAGE = "message"
UPDATE_PROMPT = "update-prompt"
ERROR = "error"
COMPLETE = "complete"
CLOSE = "close"


@dataclass(frozen=True)
class ServerEvent:
    event: str
    data: Any = ""

    def encode(self) -> str:
        """Server-sent-event framing; each line of the payload becomes its own ``data:`` line."""
        payload = self.data if isinstance(self.data, str) else json.dumps(self.data)
        lines = payload.split("\n")
        return f"event: {self.event}\n" + "".join(f"data: {line}\n" for line in lines) + "\n"


def message(text: str) -> ServerEvent:
    return ServerEvent(MESSAGE, text)


def update_prompt(text: str) -> ServerEvent:
    return ServerEvent(UPDATE_PROMPT, text)


def error(text: str) -> ServerEvent:
    return ServerEvent(ERROR, text)


def complete(sources: list[dict], session_id: str | None) -> ServerEvent:
    return ServerEvent(COMPLETE, {"sources": sources, "sessionId": session_id})


def close() -> ServerEvent:
    return ServerEvent(CLOSE, "")
