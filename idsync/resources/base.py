"""Target adapter interface and the per-target-type registry."""

from abc import ABC, abstractmethod
from typing import Dict, Set, Union

import structlog

from idsync.clients.exceptions import ValidationError
from idsync.core.models import TargetType
from idsync.core.stores import DirectoryStore

logger = structlog.get_logger(__name__)


class TargetAdapter(ABC):
    """Membership operations on one kind of local target.

    ``add_member`` and ``remove_member`` are idempotent: adding a present
    member or removing an absent one is a no-op, never an error. Both return
    True only when the store was actually mutated.
    """

    def __init__(self, directory: DirectoryStore) -> None:
        """Initialize the adapter.

        Args:
            directory: Store holding groups, project roles and org membership
        """
        self.directory = directory
        self._logger = logger.bind(
            adapter_type=self.__class__.__name__,
            target_type=self.target_type.value,
        )

    @property
    @abstractmethod
    def target_type(self) -> TargetType:
        """Target type handled by this adapter."""
        pass

    @abstractmethod
    async def validate_target(self, organization_id: str, target_id: str) -> None:
        """Check that the target exists within the organization.

        Raises:
            ValidationError: If the target does not exist or is not allowed
        """
        pass

    @abstractmethod
    async def current_members(self, organization_id: str, target_id: str) -> Set[str]:
        """Get the user IDs currently holding the target."""
        pass

    @abstractmethod
    async def add_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        """Grant the target to a user.

        Returns:
            True if membership was created or changed
        """
        pass

    @abstractmethod
    async def remove_member(self, organization_id: str, target_id: str, user_id: str) -> bool:
        """Take the target away from a user.

        Returns:
            True if membership was deleted or changed
        """
        pass


class TargetAdapterRegistry:
    """Maps each target type to its adapter."""

    def __init__(self, directory: DirectoryStore) -> None:
        # Imported here to keep the adapter modules free to import this one
        from idsync.resources.groups import GroupTargetAdapter
        from idsync.resources.organization_roles import OrganizationRoleTargetAdapter
        from idsync.resources.project_roles import ProjectRoleTargetAdapter

        self._adapters: Dict[TargetType, TargetAdapter] = {}
        for adapter in (
            GroupTargetAdapter(directory),
            ProjectRoleTargetAdapter(directory),
            OrganizationRoleTargetAdapter(directory),
        ):
            self.register(adapter)

    def register(self, adapter: TargetAdapter) -> None:
        """Register (or replace) the adapter for its target type."""
        self._adapters[adapter.target_type] = adapter

    def get(self, target_type: Union[TargetType, str]) -> TargetAdapter:
        """Get the adapter for a target type.

        Raises:
            ValidationError: If the target type is unknown
        """
        try:
            return self._adapters[TargetType(target_type)]
        except (ValueError, KeyError):
            raise ValidationError(f"Unknown target type: {target_type}") from None
