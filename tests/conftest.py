"""Shared pytest fixtures for the identity sync tests."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from idsync.clients.identity_provider import IdentityProviderClient
from idsync.core.memory import MemoryStore
from idsync.core.models import ExternalGroup, ExternalMember, Mapping, TargetType
from idsync.core.service import IdentitySyncService

ORG_A = "org-a"
ORG_B = "org-b"


class FakeIdentityClient(IdentityProviderClient):
    """Identity provider double serving fixed members and failing on request."""

    def __init__(
        self,
        members: Optional[Dict[str, List[str]]] = None,
        failing_groups: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.members = members or {}
        self.failing_groups = failing_groups or {}
        self.closed = False

    async def list_groups(self, search=None, limit=None) -> List[ExternalGroup]:
        return [ExternalGroup(id=group_id, name=group_id) for group_id in self.members]

    async def list_group_members(self, group_id: str) -> List[ExternalMember]:
        if group_id in self.failing_groups:
            raise self.failing_groups[group_id]
        return [
            ExternalMember(id=f"ext-{i}", email=email, display_name=email.split("@")[0])
            for i, email in enumerate(self.members.get(group_id, []))
        ]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def store():
    """Memory store with users, a group, projects and org members in ORG_A."""
    store = MemoryStore()
    store.add_user("u-alice", "alice@example.com", "Alice Johnson")
    store.add_user("u-bob", "bob@example.com", "Bob Smith")
    store.add_user("u-dave", "dave@example.com", "Dave Brown")
    store.add_user("u-eve", "Eve@Example.com", "Eve Davis")

    store.add_group(ORG_A, "grp-eng", "Engineering")
    store.add_group(ORG_B, "grp-other", "Other Org Group")

    store.add_project(ORG_A, "proj-1", "Platform")
    store.add_project_role(ORG_A, "role-dev", "Developer")

    store.add_organization_member(ORG_A, "u-alice")
    store.add_organization_member(ORG_A, "u-bob")
    store.add_organization_member(ORG_A, "u-dave", role="admin")
    return store


@pytest.fixture
def add_mapping(store):
    """Insert a mapping straight into the store, bypassing target validation."""

    def _add(
        organization_id: str = ORG_A,
        external_group_id: str = "ext-1",
        target_type: TargetType = TargetType.GROUP,
        target_id: str = "grp-eng",
        created_at: Optional[datetime] = None,
    ) -> Mapping:
        mapping = Mapping(
            organization_id=organization_id,
            external_group_id=external_group_id,
            external_group_name=f"{external_group_id} name",
            target_type=target_type,
            target_id=target_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
        store.mappings[mapping.id] = mapping
        return mapping

    return _add


@pytest.fixture
def fake_client():
    return FakeIdentityClient(
        members={
            "ext-1": ["alice@example.com", "bob@example.com", "carol@example.com"],
        }
    )


@pytest.fixture
def client_factory(fake_client):
    """Client factory always handing out ``fake_client``."""
    factory = MagicMock()
    factory.get_client = AsyncMock(return_value=fake_client)
    return factory


@pytest.fixture
def service(store, client_factory):
    """Service wired to the memory store and the fake identity client."""
    return IdentitySyncService(
        credentials=store,
        users=store,
        directory=store,
        mapping_repository=store,
        sync_log_repository=store,
        client_factory=client_factory,
    )


@pytest.fixture
def builtin_service(store):
    """Service resolving clients from the store's credentials (none by default)."""
    return IdentitySyncService(
        credentials=store,
        users=store,
        directory=store,
        mapping_repository=store,
        sync_log_repository=store,
    )
