"""Mapping CRUD with target validation and tenant scoping."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog

from idsync.clients.exceptions import NotFoundError
from idsync.core.models import CreateMappingInput, Mapping
from idsync.core.stores import MappingRepository
from idsync.resources.base import TargetAdapterRegistry
from idsync.security.validation import sanitize_log_input

logger = structlog.get_logger(__name__)


class MappingStore:
    """Creates, deletes and looks up mappings of an organization."""

    def __init__(self, repository: MappingRepository, adapters: TargetAdapterRegistry) -> None:
        self.repository = repository
        self.adapters = adapters
        self._logger = logger.bind(component="mapping_store")

    async def create(
        self,
        organization_id: str,
        mapping_input: Union[CreateMappingInput, Dict[str, Any]],
    ) -> Mapping:
        """Create a mapping after checking its target exists.

        Args:
            organization_id: Organization owning the mapping
            mapping_input: Mapping configuration

        Returns:
            The persisted Mapping

        Raises:
            ValidationError: If the target type is unknown or the target does
                not exist; nothing is persisted in that case
        """
        if not isinstance(mapping_input, CreateMappingInput):
            mapping_input = CreateMappingInput.model_validate(mapping_input)

        adapter = self.adapters.get(mapping_input.target_type)
        await adapter.validate_target(organization_id, mapping_input.target_id)

        mapping = Mapping(organization_id=organization_id, **mapping_input.model_dump())
        stored = await self.repository.insert_mapping(mapping)

        self._logger.info(
            "Created mapping",
            organization_id=organization_id,
            mapping_id=stored.id,
            external_group_id=sanitize_log_input(stored.external_group_id),
            target_type=stored.target_type.value,
            target_id=sanitize_log_input(stored.target_id),
        )
        return stored

    async def delete(self, organization_id: str, mapping_id: str) -> None:
        """Delete a mapping of the organization.

        Raises:
            NotFoundError: If the mapping does not exist or belongs to another organization
        """
        mapping = await self.repository.get_mapping(organization_id, mapping_id)
        if mapping is None:
            raise NotFoundError("Mapping", mapping_id)

        await self.repository.delete_mapping(mapping.id)
        self._logger.info("Deleted mapping", organization_id=organization_id, mapping_id=mapping_id)

    async def get(self, organization_id: str, mapping_id: str) -> Optional[Mapping]:
        return await self.repository.get_mapping(organization_id, mapping_id)

    async def list_by_organization(self, organization_id: str) -> List[Mapping]:
        """List the organization's mappings, newest first."""
        return await self.repository.list_mappings(organization_id)

    async def list_by_external_group(self, organization_id: str, external_group_id: str) -> List[Mapping]:
        return await self.repository.list_mappings(organization_id, external_group_id=external_group_id)

    async def mark_synced(self, mapping: Mapping, when: Optional[datetime] = None) -> Mapping:
        """Record a successful reconciliation of the mapping."""
        when = when or datetime.now(timezone.utc)
        await self.repository.set_last_sync_at(mapping.id, when)
        return mapping.model_copy(update={"last_sync_at": when})
