from __future__ import annotations

import json
import math
from uuid import uuid4

from loguru import logger

from toolchat.memory.models import Interaction
from toolchat.memory.store import MemoryStore

PREVIEW_CHARS = 100


def _text_content(content: str | list) -> str | None:
    if isinstance(content, str):
        return content
    texts = [b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text"]
    return "".join(texts) if texts else None


def last_assistant_message(messages: list[dict]) -> str:
    for msg in reversed(messages):
        if msg.get("role") == "assistant":
            text = _text_content(msg.get("content", ""))
            return text if text else "Complex response"
    return "No response"


def first_user_prompt(messages: list[dict]) -> str:
    for msg in messages:
        if msg.get("role") == "user":
            return _text_content(msg.get("content", "")) or ""
    return ""


class InteractionLog:
    """Append-only record of completed turns."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def record(self, interaction: Interaction) -> str:
        interaction_id = str(uuid4())
        self._store.execute(
            """
            INSERT INTO interactions (id, app_tag, model, document_json, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                interaction_id,
                interaction.app_tag,
                interaction.model,
                json.dumps(interaction.to_document(), ensure_ascii=True),
                interaction.timestamp,
            ),
        )
        self._store.commit()
        logger.debug(f"Interaction {interaction_id} stored ({interaction.model}, {len(interaction.messages)} messages)")
        return interaction_id

    def load(self, interaction_id: str) -> dict | None:
        row = self._store.execute(
            "SELECT document_json FROM interactions WHERE id = ? LIMIT 1",
            (interaction_id,),
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["document_json"])

    def list_page(self, page: int = 1, page_size: int = 10) -> dict:
        page = max(1, page)
        page_size = min(max(1, page_size), 100)
        total_items = int(self._store.execute("SELECT COUNT(*) AS c FROM interactions").fetchone()["c"])
        rows = self._store.execute(
            """
            SELECT id, document_json
            FROM interactions
            ORDER BY created_at DESC
            LIMIT ? OFFSET ?
            """,
            (page_size, (page - 1) * page_size),
        ).fetchall()

        interactions = []
        for row in rows:
            preview = last_assistant_message(json.loads(row["document_json"]).get("messages", []))
            if len(preview) > PREVIEW_CHARS:
                preview = preview[:PREVIEW_CHARS] + "..."
            interactions.append({"id": row["id"], "preview": preview})

        return {
            "interactions": interactions,
            "pagination": {
                "page": page,
                "pageSize": page_size,
                "totalPages": math.ceil(total_items / page_size),
                "totalItems": total_items,
            },
        }

    def get(self, interaction_id: str) -> dict | None:
        document = self.load(interaction_id)
        if document is None:
            return None
        messages = document.get("messages", [])
        return {"prompt": first_user_prompt(messages), "message": last_assistant_message(messages)}
