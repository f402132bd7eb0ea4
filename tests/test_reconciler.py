"""Tests for membership diffing and single-mapping reconciliation."""

import pytest

from idsync.clients.exceptions import ValidationError
from idsync.core.models import SyncLogAction, SyncStatus, TargetType
from idsync.core.reconciler import compute_diff
from tests.conftest import ORG_A, ORG_B, FakeIdentityClient


class TestComputeDiff:
    """Test the pure diff."""

    def test_adds_and_removes(self):
        diff = compute_diff({"A", "B"}, {"B", "D"})

        assert diff.to_add == {"A"}
        assert diff.to_remove == {"D"}
        assert not diff.is_empty

    def test_equal_sets_are_empty(self):
        assert compute_diff(["A", "B"], ["B", "A"]).is_empty


class TestResolveUserIds:
    """Test email to user resolution."""

    @pytest.mark.asyncio
    async def test_case_insensitive_and_unmatched_dropped(self, service, fake_client):
        members = await FakeIdentityClient(
            members={"g": ["ALICE@example.com", "eve@example.com", "nobody@example.com", "  "]}
        ).list_group_members("g")

        assert await service.reconciler.resolve_user_ids(members) == {"u-alice", "u-eve"}

    @pytest.mark.asyncio
    async def test_no_members(self, service):
        assert await service.reconciler.resolve_user_ids([]) == set()


class TestReconcileOne:
    """Test reconciliation of a single mapping."""

    @pytest.mark.asyncio
    async def test_diff_correctness(self, service, store, add_mapping, fake_client):
        # ext-1 holds alice, bob and carol (no local account); the group holds bob and dave
        await store.add_group_member(ORG_A, "grp-eng", "u-bob")
        await store.add_group_member(ORG_A, "grp-eng", "u-dave")
        mapping = add_mapping()

        result = await service.reconciler.reconcile_one(ORG_A, mapping, fake_client)

        assert result.added == 1
        assert result.removed == 1
        assert set(await store.list_group_member_ids(ORG_A, "grp-eng")) == {"u-alice", "u-bob"}

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, service, store, add_mapping, fake_client):
        mapping = add_mapping()

        first = await service.reconciler.reconcile_one(ORG_A, mapping, fake_client)
        second = await service.reconciler.reconcile_one(ORG_A, mapping, fake_client)

        assert (first.added, first.removed) == (2, 0)
        assert (second.added, second.removed) == (0, 0)
        assert sorted(await store.list_group_member_ids(ORG_A, "grp-eng")) == ["u-alice", "u-bob"]

        synced = [e for e in store.sync_logs if e.action == SyncLogAction.GROUP_SYNCED]
        assert len(synced) == 2
        assert synced[1].details["added"] == 0
        assert synced[1].details["removed"] == 0

    @pytest.mark.asyncio
    async def test_success_updates_last_sync_and_audits(self, service, store, add_mapping, fake_client):
        mapping = add_mapping()
        assert mapping.last_sync_at is None

        await service.reconciler.reconcile_one(ORG_A, mapping, fake_client)

        assert store.mappings[mapping.id].last_sync_at is not None
        entry = store.sync_logs[-1]
        assert entry.action == SyncLogAction.GROUP_SYNCED
        assert entry.mapping_id == mapping.id
        assert entry.status == SyncStatus.SUCCESS
        assert entry.details == {
            "groupId": "ext-1",
            "groupName": "ext-1 name",
            "targetType": "group",
            "targetId": "grp-eng",
            "added": 2,
            "removed": 0,
        }

    @pytest.mark.asyncio
    async def test_failure_is_audited_and_reraised(self, service, store, add_mapping):
        client = FakeIdentityClient(failing_groups={"ext-1": RuntimeError("provider unavailable")})
        mapping = add_mapping()

        with pytest.raises(RuntimeError, match="provider unavailable"):
            await service.reconciler.reconcile_one(ORG_A, mapping, client)

        assert len(store.sync_logs) == 1
        entry = store.sync_logs[0]
        assert entry.action == SyncLogAction.ERROR
        assert entry.status == SyncStatus.FAILURE
        assert entry.mapping_id == mapping.id
        assert entry.details == {"groupId": "ext-1"}
        assert entry.error == "provider unavailable"
        assert store.mappings[mapping.id].last_sync_at is None

    @pytest.mark.asyncio
    async def test_mapping_onto_other_organization_group_fails(self, service, store, add_mapping, fake_client):
        await store.add_group_member(ORG_B, "grp-other", "u-dave")
        mapping = add_mapping(target_id="grp-other")

        with pytest.raises(ValidationError, match="not found in organization 'org-a'"):
            await service.reconciler.reconcile_one(ORG_A, mapping, fake_client)

        assert await store.list_group_member_ids(ORG_B, "grp-other") == ["u-dave"]
        assert [e.action for e in store.sync_logs] == [SyncLogAction.ERROR]
        assert store.sync_logs[0].organization_id == ORG_A

    @pytest.mark.asyncio
    async def test_organization_role_skips_non_members(self, service, store, add_mapping):
        client = FakeIdentityClient(members={"ext-admins": ["alice@example.com", "eve@example.com"]})
        mapping = add_mapping(
            external_group_id="ext-admins",
            target_type=TargetType.ORGANIZATION_ROLE,
            target_id="admin",
        )

        result = await service.reconciler.reconcile_one(ORG_A, mapping, client)

        # alice promoted, eve is not an org member, dave demoted to member
        assert (result.added, result.removed) == (1, 1)
        assert (await store.get_organization_member(ORG_A, "u-alice")).role == "admin"
        assert (await store.get_organization_member(ORG_A, "u-dave")).role == "member"
        assert await store.get_organization_member(ORG_A, "u-eve") is None
        assert len(await store.list_organization_members(ORG_A)) == 3

    @pytest.mark.asyncio
    async def test_project_role_target(self, service, store, add_mapping, fake_client):
        mapping = add_mapping(target_type=TargetType.PROJECT_ROLE, target_id="role-dev")

        result = await service.reconciler.reconcile_one(ORG_A, mapping, fake_client)

        assert result.added == 2
        members = await store.list_project_members(ORG_A, "role-dev")
        assert {m.user_id for m in members} == {"u-alice", "u-bob"}
        assert {m.project_id for m in members} == {"proj-1"}
