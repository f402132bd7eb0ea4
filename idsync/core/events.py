"""Single-user approve/revoke events pushed by the identity provider."""

from typing import Any, Dict, Union

import structlog

from idsync.audit.logger import SyncAuditLogger
from idsync.core.mappings import MappingStore
from idsync.core.models import EventPayload, EventResult, SyncLogAction, SyncStatus
from idsync.core.stores import UserStore
from idsync.resources.base import TargetAdapterRegistry
from idsync.security.validation import sanitize_log_input

logger = structlog.get_logger(__name__)


class EventProcessor:
    """Applies one user's access change to every mapping of the affected group.

    No membership diff is computed and ``last_sync_at`` is left untouched.
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
        self._logger = logger.bind(component="event_processor")

    async def handle_event(
        self,
        organization_id: str,
        payload: Union[EventPayload, Dict[str, Any]],
    ) -> EventResult:
        """Apply an approve/revoke event.

        Args:
            organization_id: Organization the event belongs to
            payload: Event payload (``eventType``, ``userEmail``, ``groupId``, ``action``)

        Returns:
            EventResult; ``processed`` is False when the event names no group or
            user, no mapping covers the group, or the user is unknown
        """
        if not isinstance(payload, EventPayload):
            payload = EventPayload.model_validate(payload)

        log = self._logger.bind(
            organization_id=organization_id,
            event_type=sanitize_log_input(payload.event_type),
            group_id=sanitize_log_input(payload.group_id),
        )

        if not payload.group_id or not payload.user_email:
            log.info("Ignoring event without group or user")
            return EventResult(processed=False)

        mappings = await self.mappings.list_by_external_group(organization_id, payload.group_id)
        if not mappings:
            log.info("No mapping for event group")
            return EventResult(processed=False)

        user = await self.users.find_user_by_email(payload.user_email)
        if user is None:
            await self.audit.log(
                organization_id,
                None,
                SyncLogAction.ERROR,
                {
                    "eventType": payload.event_type,
                    "userEmail": payload.user_email,
                    "reason": "User not found",
                },
                status=SyncStatus.FAILURE,
                error=f"User {payload.user_email} not found",
            )
            return EventResult(processed=False)

        for mapping in mappings:
            try:
                adapter = self.adapters.get(mapping.target_type)
                details = {
                    "userId": user.id,
                    "userEmail": payload.user_email,
                    "targetType": mapping.target_type.value,
                    "targetId": mapping.target_id,
                }
                if payload.action == "approved":
                    await adapter.add_member(organization_id, mapping.target_id, user.id)
                    await self.audit.log(organization_id, mapping.id, SyncLogAction.USER_ADDED, details)
                elif payload.action == "revoked":
                    await adapter.remove_member(organization_id, mapping.target_id, user.id)
                    await self.audit.log(organization_id, mapping.id, SyncLogAction.USER_REMOVED, details)
            except Exception as e:
                log.error("Event application failed", mapping_id=mapping.id, error=str(e))
                await self.audit.log(
                    organization_id,
                    mapping.id,
                    SyncLogAction.ERROR,
                    {
                        "eventType": payload.event_type,
                        "userEmail": payload.user_email,
                        "action": payload.action,
                    },
                    status=SyncStatus.FAILURE,
                    error=str(e),
                )

        log.info("Processed event", action=payload.action, mappings=len(mappings))
        return EventResult(processed=True, action=payload.action or payload.event_type)
