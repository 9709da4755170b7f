from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class SessionRecord:
    id: str
    created_at: str
    updated_at: str
    messages: list[dict] = field(default_factory=list)


@dataclass
class Interaction:
    model: str
    params: dict
    messages: list[dict]
    usage: dict
    duration_ms: float
    app_tag: str
    timestamp: str = field(default_factory=utc_now)

    def to_document(self) -> dict:
        return {
            "model": self.model,
            "params": self.params,
            "messages": self.messages,
            "usage": self.usage,
            "durationMs": self.duration_ms,
            "appTag": self.app_tag,
            "timestamp": self.timestamp,
        }
