"""Who may use the assistant at all.

This is separate from per-song access control: it gates the chat feature
itself, before any library data is read.
"""

import logging
from collections.abc import Callable
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from assistant.services.library import LibraryDataSource, Principal, UserGroup

logger = logging.getLogger(__name__)

AssistantVisibility = Literal["public", "group_restricted", "private"]


class AssistantAccessPolicy(BaseModel):
    enabled: bool = True
    visibility: AssistantVisibility = "public"
    allowed_users: list[str] = Field(default_factory=list)
    allowed_groups: list[str] = Field(default_factory=list)


class AccessChecker(Protocol):
    async def check_access(self, principal: Principal | None) -> bool:
        ...


class AssistantAccessService:
    """Evaluates the assistant access policy for a principal.

    ``policy_source`` is called on every check so admin edits take effect
    without a restart.
    """

    def __init__(
        self,
        policy_source: Callable[[], AssistantAccessPolicy],
        library: LibraryDataSource,
    ):
        self.policy_source = policy_source
        self.library = library

    async def check_access(self, principal: Principal | None) -> bool:
        if principal is None:
            return False

        try:
            policy = self.policy_source()
            if not policy.enabled:
                return False
            if policy.visibility == "public":
                return True
            if principal.user_id in policy.allowed_users:
                return True
            if not policy.allowed_groups:
                return False

            groups: list[UserGroup] = await self.library.get_accessible_entities("groups", principal)
            return any(
                group.id in policy.allowed_groups and group.is_active
                for group in groups
            )
        except Exception as e:
            logger.error(f"Assistant access check failed for {principal.user_id}: {e}")
            return False
