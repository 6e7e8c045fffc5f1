"""Admin settings endpoints for the assistant."""

from typing import Any, Literal

from fastapi import APIRouter
from pydantic import BaseModel

from assistant.api.deps import SettingsService
from assistant.api.exceptions import ValidationError

router = APIRouter(prefix="/settings", tags=["settings"])


class AssistantSettingsResponse(BaseModel):
    """Assistant settings with the API key masked."""

    llm_provider: str | None
    llm_api_key: str | None
    llm_model: str | None
    llm_base_url: str | None
    assistant_tools_enabled: bool
    assistant_enabled: bool
    assistant_visibility: str
    assistant_allowed_users: list[str]
    assistant_allowed_groups: list[str]

    # Computed status fields
    llm_configured: bool


class AssistantSettingsUpdateRequest(BaseModel):
    """Request to update assistant settings. Omitted fields are left unchanged."""

    llm_provider: Literal["google", "anthropic", "openai"] | None = None
    llm_api_key: str | None = None
    llm_model: str | None = None
    llm_base_url: str | None = None
    assistant_tools_enabled: bool | None = None
    assistant_enabled: bool | None = None
    assistant_visibility: Literal["public", "group_restricted", "private"] | None = None
    assistant_allowed_users: list[str] | None = None
    assistant_allowed_groups: list[str] | None = None


def _response(service: SettingsService) -> AssistantSettingsResponse:
    return AssistantSettingsResponse(
        **service.get_masked(),
        llm_configured=service.get_provider_config() is not None,
    )


@router.get("/assistant", response_model=AssistantSettingsResponse)
async def get_assistant_settings(service: SettingsService) -> AssistantSettingsResponse:
    """Get current assistant settings (API key is masked)."""
    return _response(service)


@router.put("/assistant", response_model=AssistantSettingsResponse)
async def update_assistant_settings(
    request: AssistantSettingsUpdateRequest,
    service: SettingsService,
) -> AssistantSettingsResponse:
    """Update assistant settings."""
    updates = {k: v for k, v in request.model_dump().items() if v is not None}
    try:
        service.update(**updates)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return _response(service)


@router.delete("/assistant/api-key")
async def clear_api_key(service: SettingsService) -> dict[str, Any]:
    """Clear the stored LLM API key."""
    service.update(llm_api_key="")
    return {"status": "cleared", "message": "LLM API key cleared"}
