"""Dependency injection for API routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from assistant.api.exceptions import AuthenticationRequiredError
from assistant.config import settings
from assistant.db.session import async_session_maker
from assistant.services.access import AssistantAccessService
from assistant.services.app_settings import AppSettingsService, get_app_settings_service
from assistant.services.library import LibraryDataSource, Principal
from assistant.services.library_store import DatabaseLibrary
from assistant.services.llm import AssistantService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


def get_settings_service() -> AppSettingsService:
    return get_app_settings_service()


def get_library() -> LibraryDataSource:
    return DatabaseLibrary(async_session_maker)


async def get_principal(request: Request) -> Principal:
    """Get the requesting user from the X-User-ID header.

    Authentication happens upstream; the gateway in front of this service
    forwards the verified user id.
    """
    user_id = request.headers.get("X-User-ID", "").strip()
    if not user_id:
        raise AuthenticationRequiredError(detail="X-User-ID header is required")
    return Principal(user_id=user_id)


async def get_access_service(
    library: LibraryDataSource = Depends(get_library),
    settings_service: AppSettingsService = Depends(get_settings_service),
) -> AssistantAccessService:
    return AssistantAccessService(settings_service.get_access_policy, library)


async def get_assistant_service(
    library: LibraryDataSource = Depends(get_library),
    access: AssistantAccessService = Depends(get_access_service),
    settings_service: AppSettingsService = Depends(get_settings_service),
) -> AssistantService:
    return AssistantService(
        library,
        access,
        settings_service=settings_service,
        max_iterations=settings.assistant_max_tool_iterations,
        history_window=settings.assistant_history_window,
        timeout=settings.llm_timeout_seconds,
    )


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Library = Annotated[LibraryDataSource, Depends(get_library)]
CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
SettingsService = Annotated[AppSettingsService, Depends(get_settings_service)]
Assistant = Annotated[AssistantService, Depends(get_assistant_service)]
