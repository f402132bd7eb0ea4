"""Target adapters applying membership changes to local entities."""

from .base import TargetAdapter, TargetAdapterRegistry
from .groups import GroupTargetAdapter
from .organization_roles import OrganizationRoleTargetAdapter
from .project_roles import ProjectRoleTargetAdapter

__all__ = [
    "TargetAdapter",
    "TargetAdapterRegistry",
    "GroupTargetAdapter",
    "ProjectRoleTargetAdapter",
    "OrganizationRoleTargetAdapter",
]
