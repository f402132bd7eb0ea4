"""In-process implementation of every store protocol (the "memory" backend)."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from idsync.clients.exceptions import ValidationError
from idsync.core.models import (
    DEFAULT_ORGANIZATION_ROLE,
    GroupMember,
    IntegrationConfig,
    LocalGroup,
    LocalUser,
    Mapping,
    OrganizationMember,
    Project,
    ProjectMember,
    ProjectRole,
    SyncLog,
)
from idsync.core.stores import DEFAULT_PROVIDER

logger = structlog.get_logger(__name__)


class StoreSnapshot(BaseModel):
    """Serializable content of a MemoryStore."""

    users: List[LocalUser] = Field(default_factory=list)
    groups: List[LocalGroup] = Field(default_factory=list)
    group_members: List[GroupMember] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    project_roles: List[ProjectRole] = Field(default_factory=list)
    project_members: List[ProjectMember] = Field(default_factory=list)
    organization_members: List[OrganizationMember] = Field(default_factory=list)
    integrations: List[IntegrationConfig] = Field(default_factory=list)
    mappings: List[Mapping] = Field(default_factory=list)
    sync_logs: List[SyncLog] = Field(default_factory=list)


class MemoryStore:
    """Keeps users, directory entities, credentials, mappings and sync logs in memory.

    Implements CredentialStore, UserStore, DirectoryStore, MappingRepository and
    SyncLogRepository, so a single instance can back the whole engine.
    """

    def __init__(self, snapshot: Optional[StoreSnapshot] = None) -> None:
        self.load_snapshot(snapshot or StoreSnapshot())

    def load_snapshot(self, snapshot: StoreSnapshot) -> None:
        self.users: Dict[str, LocalUser] = {u.id: u for u in snapshot.users}
        self.groups: Dict[str, LocalGroup] = {g.id: g for g in snapshot.groups}
        self.group_members: List[GroupMember] = list(snapshot.group_members)
        self.projects: Dict[str, Project] = {p.id: p for p in snapshot.projects}
        self.project_roles: Dict[str, ProjectRole] = {r.id: r for r in snapshot.project_roles}
        self.project_members: List[ProjectMember] = list(snapshot.project_members)
        self.organization_members: Dict[str, OrganizationMember] = {
            m.id: m for m in snapshot.organization_members
        }
        self.integrations: List[IntegrationConfig] = list(snapshot.integrations)
        self.mappings: Dict[str, Mapping] = {m.id: m for m in snapshot.mappings}
        self.sync_logs: List[SyncLog] = list(snapshot.sync_logs)

    def to_snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            users=list(self.users.values()),
            groups=list(self.groups.values()),
            group_members=list(self.group_members),
            projects=list(self.projects.values()),
            project_roles=list(self.project_roles.values()),
            project_members=list(self.project_members),
            organization_members=list(self.organization_members.values()),
            integrations=list(self.integrations),
            mappings=list(self.mappings.values()),
            sync_logs=list(self.sync_logs),
        )

    # Seeding helpers

    def add_user(self, user_id: str, email: str, name: Optional[str] = None) -> LocalUser:
        user = LocalUser(id=user_id, email=email, name=name)
        self.users[user.id] = user
        return user

    def add_group(self, organization_id: str, group_id: str, name: str = "") -> LocalGroup:
        group = LocalGroup(id=group_id, organization_id=organization_id, name=name or group_id)
        self.groups[group.id] = group
        return group

    def add_project(self, organization_id: str, project_id: str, name: str = "") -> Project:
        project = Project(id=project_id, organization_id=organization_id, name=name or project_id)
        self.projects[project.id] = project
        return project

    def add_project_role(self, organization_id: str, role_id: str, name: str = "") -> ProjectRole:
        role = ProjectRole(id=role_id, organization_id=organization_id, name=name or role_id)
        self.project_roles[role.id] = role
        return role

    def add_organization_member(
        self,
        organization_id: str,
        user_id: str,
        role: str = DEFAULT_ORGANIZATION_ROLE,
    ) -> OrganizationMember:
        member = OrganizationMember(organization_id=organization_id, user_id=user_id, role=role)
        self.organization_members[member.id] = member
        return member

    def set_integration_config(
        self,
        organization_id: str,
        config: Dict[str, Any],
        provider: str = DEFAULT_PROVIDER,
        is_active: bool = True,
    ) -> IntegrationConfig:
        self.integrations = [
            i for i in self.integrations
            if not (i.organization_id == organization_id and i.provider == provider)
        ]
        record = IntegrationConfig(
            organization_id=organization_id,
            provider=provider,
            is_active=is_active,
            config=config,
        )
        self.integrations.append(record)
        return record

    # CredentialStore

    async def get_active_config(
        self,
        organization_id: str,
        provider: str = DEFAULT_PROVIDER,
    ) -> Optional[Dict[str, Any]]:
        for record in self.integrations:
            if (
                record.organization_id == organization_id
                and record.provider == provider
                and record.is_active
            ):
                return dict(record.config)
        return None

    # UserStore

    async def find_users_by_email(self, emails: Sequence[str]) -> List[LocalUser]:
        wanted = {email.lower() for email in emails}
        return [u for u in self.users.values() if u.email.lower() in wanted]

    async def find_user_by_email(self, email: str) -> Optional[LocalUser]:
        matches = await self.find_users_by_email([email])
        return matches[0] if matches else None

    # DirectoryStore: groups

    async def get_group(self, organization_id: str, group_id: str) -> Optional[LocalGroup]:
        group = self.groups.get(group_id)
        if group and group.organization_id == organization_id:
            return group
        return None

    def _owns_group(self, organization_id: str, group_id: str) -> bool:
        group = self.groups.get(group_id)
        return group is not None and group.organization_id == organization_id

    async def list_group_member_ids(self, organization_id: str, group_id: str) -> List[str]:
        if not self._owns_group(organization_id, group_id):
            return []
        return [m.user_id for m in self.group_members if m.group_id == group_id]

    async def has_group_member(self, organization_id: str, group_id: str, user_id: str) -> bool:
        if not self._owns_group(organization_id, group_id):
            return False
        return any(m.group_id == group_id and m.user_id == user_id for m in self.group_members)

    async def add_group_member(self, organization_id: str, group_id: str, user_id: str) -> None:
        if not self._owns_group(organization_id, group_id):
            raise ValidationError(f"Group '{group_id}' not found in organization '{organization_id}'")
        self.group_members.append(GroupMember(group_id=group_id, user_id=user_id))

    async def delete_group_members(self, organization_id: str, group_id: str, user_id: str) -> int:
        if not self._owns_group(organization_id, group_id):
            return 0
        before = len(self.group_members)
        self.group_members = [
            m for m in self.group_members
            if not (m.group_id == group_id and m.user_id == user_id)
        ]
        return before - len(self.group_members)

    # DirectoryStore: project roles

    async def get_project_role(self, organization_id: str, role_id: str) -> Optional[ProjectRole]:
        role = self.project_roles.get(role_id)
        if role and role.organization_id == organization_id:
            return role
        return None

    def _owns_project_role(self, organization_id: str, role_id: str) -> bool:
        role = self.project_roles.get(role_id)
        return role is not None and role.organization_id == organization_id

    async def list_project_members(self, organization_id: str, role_id: str) -> List[ProjectMember]:
        if not self._owns_project_role(organization_id, role_id):
            return []
        return [m for m in self.project_members if m.project_role_id == role_id]

    async def create_project_member(
        self, organization_id: str, project_id: str, user_id: str, role_id: str
    ) -> ProjectMember:
        if not self._owns_project_role(organization_id, role_id):
            raise ValidationError(f"ProjectRole '{role_id}' not found in organization '{organization_id}'")
        project = self.projects.get(project_id)
        if project is None or project.organization_id != organization_id:
            raise ValidationError(f"Project '{project_id}' not found in organization '{organization_id}'")

        member = ProjectMember(project_id=project_id, user_id=user_id, project_role_id=role_id)
        self.project_members.append(member)
        return member

    async def delete_project_members(self, organization_id: str, role_id: str, user_id: str) -> int:
        if not self._owns_project_role(organization_id, role_id):
            return 0
        before = len(self.project_members)
        self.project_members = [
            m for m in self.project_members
            if not (m.project_role_id == role_id and m.user_id == user_id)
        ]
        return before - len(self.project_members)

    async def list_project_ids(self, organization_id: str, limit: Optional[int] = None) -> List[str]:
        ids = [p.id for p in self.projects.values() if p.organization_id == organization_id]
        return ids[:limit] if limit is not None else ids

    # DirectoryStore: organization membership

    async def get_organization_member(
        self, organization_id: str, user_id: str
    ) -> Optional[OrganizationMember]:
        for member in self.organization_members.values():
            if member.organization_id == organization_id and member.user_id == user_id:
                return member
        return None

    async def list_organization_members(self, organization_id: str) -> List[OrganizationMember]:
        return [m for m in self.organization_members.values() if m.organization_id == organization_id]

    async def update_organization_member_role(self, member_id: str, role: str) -> None:
        member = self.organization_members[member_id]
        self.organization_members[member_id] = member.model_copy(update={"role": role})

    # MappingRepository

    async def insert_mapping(self, mapping: Mapping) -> Mapping:
        self.mappings[mapping.id] = mapping
        return mapping

    async def get_mapping(self, organization_id: str, mapping_id: str) -> Optional[Mapping]:
        mapping = self.mappings.get(mapping_id)
        if mapping and mapping.organization_id == organization_id:
            return mapping
        return None

    async def delete_mapping(self, mapping_id: str) -> None:
        del self.mappings[mapping_id]

    async def list_mappings(
        self,
        organization_id: str,
        external_group_id: Optional[str] = None,
    ) -> List[Mapping]:
        matches = [
            m for m in reversed(list(self.mappings.values()))
            if m.organization_id == organization_id
            and (external_group_id is None or m.external_group_id == external_group_id)
        ]
        return sorted(matches, key=lambda m: m.created_at, reverse=True)

    async def set_last_sync_at(self, mapping_id: str, when: datetime) -> None:
        mapping = self.mappings[mapping_id]
        self.mappings[mapping_id] = mapping.model_copy(update={"last_sync_at": when})

    # SyncLogRepository

    async def append_sync_log(self, entry: SyncLog) -> SyncLog:
        self.sync_logs.append(entry)
        return entry

    async def list_sync_logs(
        self,
        organization_id: str,
        mapping_id: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[str] = None,
    ) -> List[SyncLog]:
        entries = [
            e for e in reversed(self.sync_logs)
            if e.organization_id == organization_id
            and (mapping_id is None or e.mapping_id == mapping_id)
        ]
        if cursor is not None:
            positions = [i for i, e in enumerate(entries) if e.id == cursor]
            if not positions:
                logger.debug("Sync log cursor not found", cursor=cursor)
                return []
            entries = entries[positions[0] + 1:]
        return entries[:limit]
