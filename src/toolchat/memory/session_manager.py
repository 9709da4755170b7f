from __future__ import annotations

import json
from uuid import uuid4

from toolchat.errors import SessionNotFoundError
from toolchat.memory.models import SessionRecord, utc_now
from toolchat.memory.store import MemoryStore


class SessionManager:
    def __init__(self, store: MemoryStore):
        self._store = store

    def new_session_id(self) -> str:
        return str(uuid4())

    def get_session(self, session_id: str) -> SessionRecord | None:
        row = self._store.execute(
            "SELECT id, created_at, updated_at FROM chat_sessions WHERE id = ? LIMIT 1",
            (session_id,),
        ).fetchone()
        if row is None:
            return None
        return SessionRecord(
            id=row["id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            messages=self.load_messages(session_id),
        )

    def require_session(self, session_id: str) -> SessionRecord:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Chat session not found: {session_id}")
        return session

    def create_session(self, session_id: str | None = None) -> str:
        sid = session_id or self.new_session_id()
        now = utc_now()
        self._store.execute(
            "INSERT INTO chat_sessions (id, created_at, updated_at) VALUES (?, ?, ?)",
            (sid, now, now),
        )
        self._store.commit()
        return sid

    def append_messages(self, session_id: str, messages: list[dict]) -> list[tuple[str, int]]:
        row = self._store.execute(
            "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM messages WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        next_seq = int(row["max_seq"]) + 1
        now = utc_now()
        appended: list[tuple[str, int]] = []
        params: list[tuple] = []
        for offset, message in enumerate(messages):
            message_id = str(uuid4())
            seq = next_seq + offset
            params.append(
                (message_id, session_id, seq, message["role"], json.dumps(message["content"], ensure_ascii=True), now)
            )
            appended.append((message_id, seq))
        self._store.executemany(
            """
            INSERT INTO messages (id, session_id, seq, role, content_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            params,
        )
        self._store.execute(
            "UPDATE chat_sessions SET updated_at = ? WHERE id = ?",
            (now, session_id),
        )
        self._store.commit()
        return appended

    def load_messages(self, session_id: str) -> list[dict]:
        rows = self._store.execute(
            """
            SELECT role, content_json
            FROM messages
            WHERE session_id = ?
            ORDER BY seq ASC
            """,
            (session_id,),
        ).fetchall()
        return [{"role": row["role"], "content": json.loads(row["content_json"])} for row in rows]
