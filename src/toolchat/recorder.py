from __future__ import annotations

import copy

from loguru import logger

from toolchat.memory import Interaction, InteractionLog, MemoryStore, SessionManager

ATTACHMENT_PLACEHOLDER = "[binary attachment omitted]"


def redact_attachments(messages: list[dict]) -> list[dict]:
    """Copy of ``messages`` with file-part payloads in user turns replaced by a placeholder."""
    redacted = copy.deepcopy(messages)
    for msg in redacted:
        content = msg.get("content")
        if msg.get("role") != "user" or not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict) and block.get("type") == "file" and "data" in block:
                block["data"] = ATTACHMENT_PLACEHOLDER
    return redacted


class InteractionRecorder:
    def __init__(self, store: MemoryStore, sessions: SessionManager, interactions: InteractionLog, app_tag: str):
        self._store = store
        self._sessions = sessions
        self._interactions = interactions
        self._app_tag = app_tag

    def record(
        self,
        *,
        session_id: str,
        is_new_session: bool,
        history: list[dict],
        new_messages: list[dict],
        model: str,
        params: dict,
        usage: dict,
        duration_ms: float,
    ) -> str:
        """Append the turn to the session and store the interaction in one transaction.

        ``history`` is what the session held before the turn; ``new_messages`` is the
        user turn followed by the model's resulting turns.
        """
        interaction = Interaction(
            model=model,
            params=params,
            messages=redact_attachments(history + new_messages),
            usage=usage,
            duration_ms=duration_ms,
            app_tag=self._app_tag,
        )
        with self._store.transaction():
            if is_new_session:
                self._sessions.create_session(session_id)
            self._sessions.append_messages(session_id, new_messages)
            interaction_id = self._interactions.record(interaction)

        logger.info(
            f"Recorded interaction {interaction_id} for session {session_id}: "
            f"model={model}, messages={len(interaction.messages)}, duration_ms={duration_ms:.0f}"
        )
        return interaction_id
