"""Chat endpoints for the library assistant."""

from typing import Any, Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field, field_validator

from assistant.api.deps import Assistant, CurrentPrincipal, SettingsService
from assistant.api.ratelimit import CHAT_RATE_LIMIT, limiter
from assistant.services.llm.models import Message

router = APIRouter(prefix="/chat", tags=["chat"])

MAX_MESSAGE_LENGTH = 10_000
MAX_HISTORY_ITEMS = 100
MAX_HISTORY_CONTENT_LENGTH = 50_000


@router.get("/status")
async def get_chat_status(settings_service: SettingsService) -> dict[str, Any]:
    """Check if the LLM is configured.

    Returns configuration status so the frontend can show
    appropriate warnings before the user tries to chat.
    """
    effective = settings_service.get_effective()
    config = settings_service.get_provider_config()

    return {
        "configured": config is not None,
        "provider": effective.llm_provider,
        "model": config.resolved_model if config else effective.llm_model,
        "tools_enabled": effective.assistant_tools_enabled,
        "enabled": effective.assistant_enabled,
    }


class ChatMessage(BaseModel):
    """A single prior chat message."""

    role: Literal["user", "assistant"]
    content: str = Field(max_length=MAX_HISTORY_CONTENT_LENGTH)


class ChatRequest(BaseModel):
    """Chat request body."""

    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    history: list[ChatMessage] = Field(default_factory=list, max_length=MAX_HISTORY_ITEMS)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value


class ChatResponse(BaseModel):
    response: str


@router.post("", response_model=ChatResponse)
@limiter.limit(CHAT_RATE_LIMIT)
async def chat(
    request: Request,
    payload: ChatRequest,
    principal: CurrentPrincipal,
    assistant: Assistant,
) -> ChatResponse:
    """Answer a question about the caller's library.

    Returns the complete response after all tool calls are processed.
    """
    history = [Message(role=msg.role, content=msg.content) for msg in payload.history]
    answer = await assistant.ask_question(payload.message, history, principal)
    return ChatResponse(response=answer)

