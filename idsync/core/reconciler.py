"""Diff-and-apply reconciliation of one mapping."""

from typing import Iterable, Sequence, Set

import structlog

from idsync.audit.logger import SyncAuditLogger
from idsync.clients.identity_provider import IdentityProviderClient
from idsync.core.mappings import MappingStore
from idsync.core.models import (
    ExternalMember,
    Mapping,
    MembershipDiff,
    ReconcileResult,
    SyncLogAction,
    SyncStatus,
)
from idsync.core.stores import UserStore
from idsync.resources.base import TargetAdapterRegistry

logger = structlog.get_logger(__name__)


def compute_diff(external_ids: Iterable[str], current_ids: Iterable[str]) -> MembershipDiff:
    """Compute the adds and removes that make ``current_ids`` equal ``external_ids``."""
    external = set(external_ids)
    current = set(current_ids)
    return MembershipDiff(to_add=external - current, to_remove=current - external)


class Reconciler:
    """Converges a mapping's local target on the external group's membership.

    Members are joined to local users by email. External members without a
    local account are left out of the target set; that is expected, not an
    error. The mapping's sync direction is not consulted.
    """

    def __init__(
        self,
        users: UserStore,
        mappings: MappingStore,
        adapters: TargetAdapterRegistry,
        audit: SyncAuditLogger,
    ) -> None:
        self.users = users
        self.mappings = mappings
        self.adapters = adapters
        self.audit = audit
        self._logger = logger.bind(component="reconciler")

    async def resolve_user_ids(self, members: Sequence[ExternalMember]) -> Set[str]:
        """Map external members to local user IDs by case-insensitive email."""
        emails = sorted({m.email.strip().lower() for m in members if m.email and m.email.strip()})
        if not emails:
            return set()

        users = await self.users.find_users_by_email(emails)
        resolved = {u.id for u in users}

        unmatched = len(emails) - len({u.email.lower() for u in users})
        if unmatched > 0:
            self._logger.debug("External members without a local account", count=unmatched)
        return resolved

    async def reconcile_one(
        self,
        organization_id: str,
        mapping: Mapping,
        client: IdentityProviderClient,
    ) -> ReconcileResult:
        """Run a full membership diff for one mapping.

        Adds are applied before removes. On success the mapping's
        ``last_sync_at`` is updated and a ``group_synced`` entry is written.

        Returns:
            Number of memberships actually added and removed

        Raises:
            Exception: Whatever failed, after an ``error`` audit entry was written
        """
        log = self._logger.bind(
            organization_id=organization_id,
            mapping_id=mapping.id,
            external_group_id=mapping.external_group_id,
        )

        try:
            external_members = await client.list_group_members(mapping.external_group_id)
            external_ids = await self.resolve_user_ids(external_members)

            adapter = self.adapters.get(mapping.target_type)
            current_ids = await adapter.current_members(organization_id, mapping.target_id)

            diff = compute_diff(external_ids, current_ids)
            log.debug(
                "Computed membership diff",
                external_members=len(external_members),
                resolved=len(external_ids),
                current=len(current_ids),
                to_add=len(diff.to_add),
                to_remove=len(diff.to_remove),
            )

            added = 0
            for user_id in sorted(diff.to_add):
                if await adapter.add_member(organization_id, mapping.target_id, user_id):
                    added += 1

            removed = 0
            for user_id in sorted(diff.to_remove):
                if await adapter.remove_member(organization_id, mapping.target_id, user_id):
                    removed += 1
        except Exception as e:
            log.error("Reconciliation failed", error=str(e), error_type=type(e).__name__)
            await self.audit.log(
                organization_id,
                mapping.id,
                SyncLogAction.ERROR,
                {"groupId": mapping.external_group_id},
                status=SyncStatus.FAILURE,
                error=str(e),
            )
            raise

        await self.mappings.mark_synced(mapping)
        await self.audit.log(
            organization_id,
            mapping.id,
            SyncLogAction.GROUP_SYNCED,
            {
                "groupId": mapping.external_group_id,
                "groupName": mapping.external_group_name,
                "targetType": mapping.target_type.value,
                "targetId": mapping.target_id,
                "added": added,
                "removed": removed,
            },
        )

        log.info("Reconciled mapping", added=added, removed=removed)
        return ReconcileResult(added=added, removed=removed)
