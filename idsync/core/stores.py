"""Interfaces of the stores the sync engine reads from and writes to.

The engine owns two records (mappings and sync logs); everything else - the
credential store, users, groups, projects and organization membership - belongs
to the host platform and is only reached through these protocols. Every
organization-owned query takes the organization id so tenants never mix.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from idsync.core.models import (
    LocalGroup,
    LocalUser,
    Mapping,
    OrganizationMember,
    ProjectMember,
    ProjectRole,
    SyncLog,
)

DEFAULT_PROVIDER = "identity-sync"


class CredentialStore(Protocol):
    async def get_active_config(
        self,
        organization_id: str,
        provider: str = DEFAULT_PROVIDER,
    ) -> Optional[Dict[str, Any]]:
        """Return the decrypted config of the active integration, or None."""
        ...


class UserStore(Protocol):
    async def find_users_by_email(self, emails: Sequence[str]) -> List[LocalUser]:
        """Return users whose email matches one of ``emails``, ignoring case."""
        ...

    async def find_user_by_email(self, email: str) -> Optional[LocalUser]:
        ...


class DirectoryStore(Protocol):
    """Groups, project roles and organization membership of the host platform."""

    # Groups
    async def get_group(self, organization_id: str, group_id: str) -> Optional[LocalGroup]:
        ...

    async def list_group_member_ids(self, organization_id: str, group_id: str) -> List[str]:
        """Return member IDs; empty when the group is not in the organization."""
        ...

    async def has_group_member(self, organization_id: str, group_id: str, user_id: str) -> bool:
        ...

    async def add_group_member(self, organization_id: str, group_id: str, user_id: str) -> None:
        """Raises ValidationError when the group is not in the organization."""
        ...

    async def delete_group_members(self, organization_id: str, group_id: str, user_id: str) -> int:
        """Delete every membership row of the user; returns the number deleted."""
        ...

    # Project roles
    async def get_project_role(self, organization_id: str, role_id: str) -> Optional[ProjectRole]:
        ...

    async def list_project_members(self, organization_id: str, role_id: str) -> List[ProjectMember]:
        """Return every project membership holding ``role_id``, on any project of the organization."""
        ...

    async def create_project_member(
        self, organization_id: str, project_id: str, user_id: str, role_id: str
    ) -> ProjectMember:
        """Raises ValidationError when the project or role is not in the organization."""
        ...

    async def delete_project_members(self, organization_id: str, role_id: str, user_id: str) -> int:
        ...

    async def list_project_ids(self, organization_id: str, limit: Optional[int] = None) -> List[str]:
        ...

    # Organization membership
    async def get_organization_member(
        self, organization_id: str, user_id: str
    ) -> Optional[OrganizationMember]:
        ...

    async def list_organization_members(self, organization_id: str) -> List[OrganizationMember]:
        ...

    async def update_organization_member_role(self, member_id: str, role: str) -> None:
        ...


class MappingRepository(Protocol):
    async def insert_mapping(self, mapping: Mapping) -> Mapping:
        ...

    async def get_mapping(self, organization_id: str, mapping_id: str) -> Optional[Mapping]:
        ...

    async def delete_mapping(self, mapping_id: str) -> None:
        ...

    async def list_mappings(
        self,
        organization_id: str,
        external_group_id: Optional[str] = None,
    ) -> List[Mapping]:
        """Return the organization's mappings, newest first."""
        ...

    async def set_last_sync_at(self, mapping_id: str, when: datetime) -> None:
        ...


class SyncLogRepository(Protocol):
    async def append_sync_log(self, entry: SyncLog) -> SyncLog:
        ...

    async def list_sync_logs(
        self,
        organization_id: str,
        mapping_id: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[str] = None,
    ) -> List[SyncLog]:
        """Return entries newest first, starting after ``cursor`` when given."""
        ...
