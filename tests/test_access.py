"""Tests for the assistant access policy."""

from unittest.mock import AsyncMock

import pytest

from assistant.services.access import AssistantAccessPolicy, AssistantAccessService
from assistant.services.library import Principal


def _service(library, **policy) -> AssistantAccessService:
    return AssistantAccessService(lambda: AssistantAccessPolicy(**policy), library)


@pytest.mark.asyncio
async def test_no_principal_denied(library):
    assert await _service(library).check_access(None) is False


@pytest.mark.asyncio
async def test_public_allows_everyone(library, principal):
    assert await _service(library).check_access(principal) is True


@pytest.mark.asyncio
async def test_disabled_denies_everyone(library, principal):
    assert await _service(library, enabled=False).check_access(principal) is False


@pytest.mark.asyncio
async def test_private_allows_listed_users(library, principal):
    service = _service(library, visibility="private", allowed_users=["user-1"])
    assert await service.check_access(principal) is True
    assert await service.check_access(Principal(user_id="user-3")) is False


@pytest.mark.asyncio
async def test_group_restricted(library, principal):
    allowed = _service(library, visibility="group_restricted", allowed_groups=["group-1"])
    assert await allowed.check_access(principal) is True

    # user-1 is not in group-2
    denied = _service(library, visibility="group_restricted", allowed_groups=["group-2"])
    assert await denied.check_access(principal) is False


@pytest.mark.asyncio
async def test_failure_denies(principal):
    library = AsyncMock()
    library.get_accessible_entities.side_effect = RuntimeError("db down")
    service = _service(library, visibility="group_restricted", allowed_groups=["group-1"])
    assert await service.check_access(principal) is False


@pytest.mark.asyncio
async def test_policy_read_on_every_check(library, principal, settings_service):
    service = AssistantAccessService(settings_service.get_access_policy, library)
    assert await service.check_access(principal) is True

    settings_service.update(assistant_enabled=False)
    assert await service.check_access(principal) is False
