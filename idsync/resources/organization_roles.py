"""Organization role target: the ``role`` field of existing organization members."""

from typing import Set

from idsync.clients.exceptions import ValidationError
from idsync.core.models import DEFAULT_ORGANIZATION_ROLE, OrganizationRole, TargetType
from idsync.resources.base import TargetAdapter

VALID_ORGANIZATION_ROLES = [role.value for role in OrganizationRole]


class OrganizationRoleTargetAdapter(TargetAdapter):
    """Keeps an organization role in sync. The target ID is the role name.

    Never creates or deletes organization membership: users who are not yet
    members are skipped, and removal resets the role to the default.
    """

    @property
    def target_type(self) -> TargetType:
        return TargetType.ORGANIZATION_ROLE

    async def validate_target(self, organization_id: str, target_id: str) -> None:
        if target_id not in VALID_ORGANIZATION_ROLES:
            raise ValidationError(
                f"Invalid organization role '{target_id}'. "
                f"Must be one of: {', '.join(VALID_ORGANIZATION_ROLES)}"
            )

    async def current_members(self, organization_id: str, target_id: str) -> Set[str]:
        members = await self.directory.list_organization_members(organization_id)
        return {m.user_id for m in members if m.role == target_id}

    async def add_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        member = await self.directory.get_organization_member(organization_id, user_id)
        if member is None:
            self._logger.debug(
                "User is not an organization member, skipping role assignment",
                organization_id=organization_id,
                user_id=user_id,
            )
            return False
        if member.role == target_id:
            return False

        await self.directory.update_organization_member_role(member.id, target_id)
        self._logger.debug(
            "Updated organization role",
            user_id=user_id,
            old_role=member.role,
            new_role=target_id,
        )
        return True

    async def remove_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        member = await self.directory.get_organization_member(organization_id, user_id)
        if member is None or member.role == DEFAULT_ORGANIZATION_ROLE:
            return False

        await self.directory.update_organization_member_role(member.id, DEFAULT_ORGANIZATION_ROLE)
        self._logger.debug(
            "Reset organization role",
            user_id=user_id,
            old_role=member.role,
            new_role=DEFAULT_ORGANIZATION_ROLE,
        )
        return True
