"""Domain models for mappings, sync logs and the local access-control entities."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class TargetType(str, Enum):
    """Kinds of local entity a mapping can keep in sync."""
    GROUP = "group"
    PROJECT_ROLE = "projectRole"
    ORGANIZATION_ROLE = "organizationRole"


class SyncDirection(str, Enum):
    """Sync directions. Only PULL has a reconciliation path."""
    PULL = "pull"
    PUSH = "push"
    BIDIRECTIONAL = "bidirectional"


class SyncLogAction(str, Enum):
    """Actions recorded in the sync log."""
    USER_ADDED = "user_added"
    USER_REMOVED = "user_removed"
    GROUP_SYNCED = "group_synced"
    FULL_SYNC = "full_sync"
    ERROR = "error"


class SyncStatus(str, Enum):
    """Outcome of a logged sync action."""
    SUCCESS = "success"
    FAILURE = "failure"


class OrganizationRole(str, Enum):
    """Fixed organization role names."""
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


DEFAULT_ORGANIZATION_ROLE = OrganizationRole.MEMBER.value


class _CamelModel(BaseModel):
    """Accepts both camelCase (wire) and snake_case (Python) field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Mapping records

class CreateMappingInput(_CamelModel):
    """Admin input for creating a mapping."""

    external_group_id: str = Field(..., min_length=1)
    external_group_name: str = Field(..., min_length=1)
    target_type: TargetType
    target_id: str = Field(..., min_length=1)
    role_name: Optional[str] = None
    sync_direction: SyncDirection = SyncDirection.PULL


class Mapping(_CamelModel):
    """Binds one external group to one local target."""

    id: str = Field(default_factory=_new_id)
    organization_id: str
    external_group_id: str
    external_group_name: str
    target_type: TargetType
    target_id: str
    role_name: Optional[str] = None
    sync_direction: SyncDirection = SyncDirection.PULL
    last_sync_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class SyncLog(_CamelModel):
    """Append-only audit record of a sync action."""

    id: str = Field(default_factory=_new_id)
    organization_id: str
    mapping_id: Optional[str] = None
    action: SyncLogAction
    details: Dict[str, Any] = Field(default_factory=dict)
    status: SyncStatus = SyncStatus.SUCCESS
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class SyncLogPage(BaseModel):
    """One page of sync logs, newest first."""

    items: List[SyncLog] = Field(default_factory=list)
    next_cursor: Optional[str] = None


# External (identity provider) records

class ExternalGroup(_CamelModel):
    """A group (workgroup / access profile) held by the identity provider."""

    id: str
    name: str
    description: str = ""
    member_count: int = 0
    type: str = "workgroup"


class ExternalMember(_CamelModel):
    """An identity in an external group."""

    id: str
    email: str
    display_name: str = ""


# Local access-control entities

class LocalUser(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


class LocalGroup(BaseModel):
    id: str
    organization_id: str
    name: str


class Project(BaseModel):
    id: str
    organization_id: str
    name: str


class ProjectRole(BaseModel):
    id: str
    organization_id: str
    name: str


class GroupMember(BaseModel):
    group_id: str
    user_id: str


class IntegrationConfig(BaseModel):
    """Credential record of an organization's identity provider integration."""

    organization_id: str
    provider: str
    is_active: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)


class ProjectMember(BaseModel):
    id: str = Field(default_factory=_new_id)
    project_id: str
    user_id: str
    project_role_id: str


class OrganizationMember(BaseModel):
    id: str = Field(default_factory=_new_id)
    organization_id: str
    user_id: str
    role: str = DEFAULT_ORGANIZATION_ROLE


# Results

class MembershipDiff(BaseModel):
    """Member-set changes needed to converge a target on the external group."""

    to_add: Set[str] = Field(default_factory=set)
    to_remove: Set[str] = Field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


class ReconcileResult(BaseModel):
    added: int = 0
    removed: int = 0


class FullSyncResult(BaseModel):
    total_added: int = 0
    total_removed: int = 0
    errors: List[str] = Field(default_factory=list)


class EventPayload(_CamelModel):
    """Approve/revoke notification pushed by the identity provider.

    Every field is optional; an incomplete payload is answered with
    ``processed=False`` rather than rejected.
    """

    event_type: Optional[str] = None
    user_email: Optional[str] = None
    group_id: Optional[str] = None
    action: Optional[Literal["approved", "revoked"]] = None


class EventResult(BaseModel):
    processed: bool
    action: Optional[str] = None
