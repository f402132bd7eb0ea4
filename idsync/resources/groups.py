"""Local group target: membership rows in the group association."""

from typing import Set

from idsync.clients.exceptions import ValidationError
from idsync.core.models import TargetType
from idsync.resources.base import TargetAdapter


class GroupTargetAdapter(TargetAdapter):
    """Keeps a local group's member rows in sync."""

    @property
    def target_type(self) -> TargetType:
        return TargetType.GROUP

    async def validate_target(self, organization_id: str, target_id: str) -> None:
        if await self.directory.get_group(organization_id, target_id) is None:
            raise ValidationError(f"Group '{target_id}' not found")

    async def current_members(self, organization_id: str, target_id: str) -> Set[str]:
        return set(await self.directory.list_group_member_ids(organization_id, target_id))

    async def add_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        if await self.directory.has_group_member(organization_id, target_id, user_id):
            return False
        await self.directory.add_group_member(organization_id, target_id, user_id)
        self._logger.debug("Added group member", group_id=target_id, user_id=user_id)
        return True

    async def remove_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        deleted = await self.directory.delete_group_members(organization_id, target_id, user_id)
        if deleted:
            self._logger.debug("Removed group member", group_id=target_id, user_id=user_id)
        return deleted > 0
