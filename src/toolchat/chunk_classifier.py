from __future__ import annotations

from enum import Enum

REASONING_OPEN = "<think>"
REASONING_CLOSE = "</think>"


class ChunkKind(str, Enum):
    NONE = "none"
    REASONING = "reasoning"
    TEXT = "text"


class ChunkClassifier:
    """Wraps runs of reasoning chunks in open/close markers for one stream.

    The only state is the kind of the previous chunk. Entering reasoning emits
    the opening marker before the chunk; leaving it emits the closing marker
    before the new chunk. Call ``finish`` at stream end to close an open run.
    """

    def __init__(self, open_marker: str = REASONING_OPEN, close_marker: str = REASONING_CLOSE):
        self._open = open_marker
        self._close = close_marker
        self.last_kind = ChunkKind.NONE

    def feed(self, kind: str, text: str) -> list[str]:
        current = ChunkKind.REASONING if kind == ChunkKind.REASONING.value else ChunkKind.TEXT
        out: list[str] = []
        if current is ChunkKind.REASONING and self.last_kind is not ChunkKind.REASONING:
            out.append(self._open)
        elif current is not ChunkKind.REASONING and self.last_kind is ChunkKind.REASONING:
            out.append(self._close)
        out.append(text)
        self.last_kind = current
        return out

    def finish(self) -> list[str]:
        if self.last_kind is ChunkKind.REASONING:
            self.last_kind = ChunkKind.NONE
            return [self._close]
        return []
