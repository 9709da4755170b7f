from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from typing import Any, Protocol

from loguru import logger

DEFAULT_TTL_SECONDS = 600.0


class CorrelationStore(Protocol):
    def admit(self, payload: Any) -> str: ...

    def redeem(self, token: str) -> Any | None: ...


class InMemoryCorrelationStore:
    """Single-use handoff from an admission call to the streaming call that follows it.

    ``redeem`` removes the entry under the lock, so a token yields its payload at
    most once. Entries never redeemed expire after ``ttl_seconds`` and are swept
    on every admit and redeem.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}

    def admit(self, payload: Any) -> str:
        token = uuid.uuid4().hex
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._entries[token] = (now, payload)
        return token

    def redeem(self, token: str) -> Any | None:
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            entry = self._entries.pop(token, None)
        if entry is None:
            return None
        return entry[1]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_expired(self, now: float) -> None:
        if self._ttl_seconds <= 0:
            return
        expired = [t for t, (admitted, _) in self._entries.items() if now - admitted >= self._ttl_seconds]
        for token in expired:
            del self._entries[token]
        if expired:
            logger.warning(f"Evicted {len(expired)} unredeemed correlation token(s)")
