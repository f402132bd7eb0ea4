"""Single-mapping and organization-wide sync runs."""

import time

import structlog

from idsync.audit.logger import SyncAuditLogger
from idsync.clients.exceptions import NotFoundError
from idsync.clients.factory import IdentityClientFactory
from idsync.core.mappings import MappingStore
from idsync.core.models import FullSyncResult, ReconcileResult, SyncLogAction
from idsync.core.reconciler import Reconciler

logger = structlog.get_logger(__name__)


class SyncOrchestrator:
    """Runs reconciliation for one mapping or for every mapping of an organization."""

    def __init__(
        self,
        mappings: MappingStore,
        reconciler: Reconciler,
        audit: SyncAuditLogger,
        client_factory: IdentityClientFactory,
    ) -> None:
        self.mappings = mappings
        self.reconciler = reconciler
        self.audit = audit
        self.client_factory = client_factory
        self._logger = logger.bind(component="sync_orchestrator")

    async def sync_mapping(self, organization_id: str, mapping_id: str) -> ReconcileResult:
        """Reconcile one mapping; failures reach the caller.

        Raises:
            NotFoundError: If the mapping is not owned by the organization
        """
        mapping = await self.mappings.get(organization_id, mapping_id)
        if mapping is None:
            raise NotFoundError("Mapping", mapping_id)

        async with await self.client_factory.get_client(organization_id) as client:
            return await self.reconciler.reconcile_one(organization_id, mapping, client)

    async def sync_all(self, organization_id: str) -> FullSyncResult:
        """Reconcile every mapping of the organization.

        A failing mapping is recorded in ``errors`` and the run moves on to the
        next one. One ``full_sync`` summary entry is written at the end.
        """
        start_time = time.time()
        mappings = await self.mappings.list_by_organization(organization_id)
        result = FullSyncResult()

        self._logger.info(
            "Starting full sync",
            organization_id=organization_id,
            mapping_count=len(mappings),
        )

        async with await self.client_factory.get_client(organization_id) as client:
            for mapping in mappings:
                try:
                    outcome = await self.reconciler.reconcile_one(organization_id, mapping, client)
                except Exception as e:
                    result.errors.append(f"Mapping {mapping.id}: {e}")
                    continue

                result.total_added += outcome.added
                result.total_removed += outcome.removed

        await self.audit.log(
            organization_id,
            None,
            SyncLogAction.FULL_SYNC,
            {
                "mappingCount": len(mappings),
                "totalAdded": result.total_added,
                "totalRemoved": result.total_removed,
                "errorCount": len(result.errors),
            },
        )

        self._logger.info(
            "Full sync completed",
            organization_id=organization_id,
            total_added=result.total_added,
            total_removed=result.total_removed,
            error_count=len(result.errors),
            duration_seconds=round(time.time() - start_time, 3),
        )
        return result
