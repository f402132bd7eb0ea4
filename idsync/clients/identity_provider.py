"""Identity provider client interface and the built-in directory dataset."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import structlog

from idsync.core.models import ExternalGroup, ExternalMember

logger = structlog.get_logger(__name__)

DEFAULT_GROUP_LIMIT = 50


def filter_groups(
    groups: Sequence[ExternalGroup],
    search: Optional[str] = None,
    limit: Optional[int] = None,
    default_limit: int = DEFAULT_GROUP_LIMIT,
) -> List[ExternalGroup]:
    """Apply group search and result capping.

    Args:
        groups: Groups in provider order
        search: Case-insensitive substring matched against name and description
        limit: Maximum number of groups to return
        default_limit: Cap used when ``limit`` is not given

    Returns:
        Matching groups, at most ``limit`` of them
    """
    filtered = list(groups)
    if search:
        needle = search.lower()
        filtered = [
            g for g in filtered
            if needle in g.name.lower() or needle in g.description.lower()
        ]

    cap = limit if limit is not None else default_limit
    return filtered[:max(cap, 0)]


class IdentityProviderClient(ABC):
    """Read access to an identity provider's groups and their members."""

    @abstractmethod
    async def list_groups(
        self,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ExternalGroup]:
        """List groups, optionally filtered by name/description.

        Args:
            search: Case-insensitive substring to match
            limit: Maximum number of groups to return

        Returns:
            List of ExternalGroup objects

        Raises:
            IntegrationError: If a live provider call fails
        """

    @abstractmethod
    async def list_group_members(self, group_id: str) -> List[ExternalMember]:
        """List the identities in a group.

        Raises:
            IntegrationError: If a live provider call fails
        """

    async def close(self) -> None:
        """Release any resources held by the client."""

    async def __aenter__(self) -> "IdentityProviderClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


_BUILTIN_GROUPS: List[Dict[str, Any]] = [
    {
        "id": "sp-grp-001",
        "name": "Engineering Team",
        "description": "Software engineering security group",
        "member_count": 25,
        "type": "workgroup",
    },
    {
        "id": "sp-grp-002",
        "name": "DevOps Access",
        "description": "DevOps tooling and infrastructure access",
        "member_count": 12,
        "type": "access_profile",
    },
    {
        "id": "sp-grp-003",
        "name": "QA Engineers",
        "description": "Quality assurance team access group",
        "member_count": 8,
        "type": "workgroup",
    },
    {
        "id": "sp-grp-004",
        "name": "Project Managers",
        "description": "Project management access and tools",
        "member_count": 6,
        "type": "workgroup",
    },
    {
        "id": "sp-grp-005",
        "name": "IT Administrators",
        "description": "Full administrative access group",
        "member_count": 4,
        "type": "access_profile",
    },
    {
        "id": "sp-grp-006",
        "name": "Security Team",
        "description": "Information security team access",
        "member_count": 7,
        "type": "workgroup",
    },
]

_ALICE = {"id": "sp-usr-001", "email": "alice@example.com", "display_name": "Alice Johnson"}

_BUILTIN_MEMBERS: Dict[str, List[Dict[str, str]]] = {
    "sp-grp-001": [
        _ALICE,
        {"id": "sp-usr-002", "email": "bob@example.com", "display_name": "Bob Smith"},
        {"id": "sp-usr-003", "email": "carol@example.com", "display_name": "Carol Williams"},
    ],
    "sp-grp-002": [
        _ALICE,
        {"id": "sp-usr-004", "email": "dave@example.com", "display_name": "Dave Brown"},
    ],
    "sp-grp-003": [
        {"id": "sp-usr-005", "email": "eve@example.com", "display_name": "Eve Davis"},
        {"id": "sp-usr-006", "email": "frank@example.com", "display_name": "Frank Miller"},
    ],
}


class BuiltinDirectoryClient(IdentityProviderClient):
    """Fixed in-process directory served when no live credentials are configured."""

    def __init__(self, default_limit: int = DEFAULT_GROUP_LIMIT) -> None:
        self.default_limit = default_limit
        self._logger = logger.bind(client_type=self.__class__.__name__)

    async def list_groups(
        self,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ExternalGroup]:
        groups = [ExternalGroup(**data) for data in _BUILTIN_GROUPS]
        result = filter_groups(groups, search, limit, self.default_limit)
        self._logger.debug("Listed built-in groups", search=search, count=len(result))
        return result

    async def list_group_members(self, group_id: str) -> List[ExternalMember]:
        return [ExternalMember(**data) for data in _BUILTIN_MEMBERS.get(group_id, [])]
