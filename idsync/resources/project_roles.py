"""Project role target: one role pool across every project of the organization."""

from typing import Optional, Set

from idsync.clients.exceptions import ValidationError
from idsync.core.models import TargetType
from idsync.resources.base import TargetAdapter


class ProjectRoleTargetAdapter(TargetAdapter):
    """Keeps the holders of a project role in sync.

    Role IDs are project-scoped, but membership is diffed as a single pool:
    a user holding the role on any project counts as a member.
    """

    @property
    def target_type(self) -> TargetType:
        return TargetType.PROJECT_ROLE

    async def validate_target(self, organization_id: str, target_id: str) -> None:
        if await self.directory.get_project_role(organization_id, target_id) is None:
            raise ValidationError(f"ProjectRole '{target_id}' not found")

    async def current_members(self, organization_id: str, target_id: str) -> Set[str]:
        members = await self.directory.list_project_members(organization_id, target_id)
        return {m.user_id for m in members}

    async def add_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        members = await self.directory.list_project_members(organization_id, target_id)
        if any(m.user_id == user_id for m in members):
            return False

        project_id = await self._pick_project(organization_id, members[0].project_id if members else None)
        if project_id is None:
            # Nowhere to attach the membership; not a sync failure
            self._logger.info(
                "No project to attach role membership, skipping",
                organization_id=organization_id,
                role_id=target_id,
                user_id=user_id,
            )
            return False

        await self.directory.create_project_member(organization_id, project_id, user_id, target_id)
        self._logger.debug(
            "Added project role member",
            project_id=project_id,
            role_id=target_id,
            user_id=user_id,
        )
        return True

    async def _pick_project(self, organization_id: str, preferred: Optional[str]) -> Optional[str]:
        """Reuse a project already carrying the role, else any project of the organization."""
        if preferred:
            return preferred
        project_ids = await self.directory.list_project_ids(organization_id, limit=1)
        return project_ids[0] if project_ids else None

    async def remove_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        deleted = await self.directory.delete_project_members(organization_id, target_id, user_id)
        if deleted:
            self._logger.debug(
                "Removed project role member",
                role_id=target_id,
                user_id=user_id,
                rows=deleted,
            )
        return deleted > 0
