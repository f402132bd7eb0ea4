"""Outward interface of the sync engine, consumed by the web transport and the CLI."""

from typing import Any, Dict, List, Optional, Union

import structlog

from idsync.audit.logger import SyncAuditLogger
from idsync.clients.factory import IdentityClientFactory
from idsync.core.events import EventProcessor
from idsync.core.executor import SyncOrchestrator
from idsync.core.mappings import MappingStore
from idsync.core.models import (
    CreateMappingInput,
    EventPayload,
    EventResult,
    ExternalGroup,
    FullSyncResult,
    Mapping,
    ReconcileResult,
    SyncLogPage,
)
from idsync.core.reconciler import Reconciler
from idsync.core.stores import CredentialStore, DirectoryStore, MappingRepository, SyncLogRepository, UserStore
from idsync.resources.base import TargetAdapterRegistry

logger = structlog.get_logger(__name__)


class IdentitySyncService:
    """Wires the engine components together and exposes its operations.

    Callers are expected to have authenticated and authorized the request;
    every operation is scoped to the given organization.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        users: UserStore,
        directory: DirectoryStore,
        mapping_repository: MappingRepository,
        sync_log_repository: SyncLogRepository,
        client_factory: Optional[IdentityClientFactory] = None,
        default_page_size: int = 50,
    ) -> None:
        """Initialize the service.

        Args:
            credentials: Source of identity provider credentials
            users: Local user lookup
            directory: Local groups, project roles and org membership
            mapping_repository: Mapping persistence
            sync_log_repository: Sync log persistence
            client_factory: Identity provider client selection (built from
                ``credentials`` when omitted)
            default_page_size: Sync log page size when no limit is given
        """
        self.client_factory = client_factory or IdentityClientFactory(credentials)
        self.adapters = TargetAdapterRegistry(directory)
        self.audit = SyncAuditLogger(sync_log_repository, default_page_size=default_page_size)
        self.mappings = MappingStore(mapping_repository, self.adapters)
        self.reconciler = Reconciler(users, self.mappings, self.adapters, self.audit)
        self.orchestrator = SyncOrchestrator(self.mappings, self.reconciler, self.audit, self.client_factory)
        self.events = EventProcessor(users, self.mappings, self.adapters, self.audit)

    async def list_groups(
        self,
        organization_id: str,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ExternalGroup]:
        async with await self.client_factory.get_client(organization_id) as client:
            return await client.list_groups(search=search, limit=limit)

    async def create_mapping(
        self,
        organization_id: str,
        mapping_input: Union[CreateMappingInput, Dict[str, Any]],
    ) -> Mapping:
        return await self.mappings.create(organization_id, mapping_input)

    async def delete_mapping(self, organization_id: str, mapping_id: str) -> None:
        await self.mappings.delete(organization_id, mapping_id)

    async def list_mappings(self, organization_id: str) -> List[Mapping]:
        return await self.mappings.list_by_organization(organization_id)

    async def sync_mapping(self, organization_id: str, mapping_id: str) -> ReconcileResult:
        return await self.orchestrator.sync_mapping(organization_id, mapping_id)

    async def sync_all(self, organization_id: str) -> FullSyncResult:
        return await self.orchestrator.sync_all(organization_id)

    async def get_sync_logs(
        self,
        organization_id: str,
        mapping_id: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> SyncLogPage:
        return await self.audit.get_sync_logs(organization_id, mapping_id=mapping_id, limit=limit, cursor=cursor)

    async def handle_event(
        self,
        organization_id: str,
        payload: Union[EventPayload, Dict[str, Any]],
    ) -> EventResult:
        return await self.events.handle_event(organization_id, payload)
