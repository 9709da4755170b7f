"""Wire models for the admission and synchronous chat calls."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from toolchat.errors import RequestValidationError


class ChatRequest(BaseModel):
    """Admission payload. Accepts camelCase wire names and snake_case."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = Field(default=None, validation_alias=AliasChoices("maxTokens", "max_tokens"))
    system: str | None = None
    message: str
    session_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "chatSessionId", "session_id"),
    )
    mode: str | None = None


class ChatResponse(BaseModel):
    content: str
    reasoning: str | None = None
    tool_summary: list[str] | None = Field(default=None, serialization_alias="toolSummary")
    sources: list[dict[str, Any]] | None = None
    session_id: str | None = Field(default=None, serialization_alias="sessionId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_chat_request(payload: Any) -> ChatRequest:
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as ex:
        raise RequestValidationError(
            f"Invalid chat request: {ex.error_count()} error(s)",
            [{"loc": list(e["loc"]), "msg": e["msg"]} for e in ex.errors()],
        ) from ex
