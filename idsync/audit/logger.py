"""Sync log audit trail: one durable record per sync action."""

from typing import Any, Dict, Optional, Union

import structlog

from idsync.core.models import SyncLog, SyncLogAction, SyncLogPage, SyncStatus
from idsync.core.stores import SyncLogRepository
from idsync.security.validation import sanitize_log_input

logger = structlog.get_logger(__name__)


class SyncAuditLogger:
    """Writes SyncLog entries and reads them back page by page.

    Every write goes straight to the repository: no batching, no retries and no
    fallback. A failing write propagates to the caller.
    """

    def __init__(self, repository: SyncLogRepository, default_page_size: int = 50) -> None:
        """Initialize audit logger.

        Args:
            repository: Persistence for sync log entries
            default_page_size: Page size used when no limit is given
        """
        self.repository = repository
        self.default_page_size = default_page_size
        self._logger = logger.bind(component="sync_audit")

    async def log(
        self,
        organization_id: str,
        mapping_id: Optional[str],
        action: Union[SyncLogAction, str],
        details: Optional[Dict[str, Any]] = None,
        status: Union[SyncStatus, str] = SyncStatus.SUCCESS,
        error: Optional[str] = None,
    ) -> SyncLog:
        """Record a sync action.

        Args:
            organization_id: Tenant the action belongs to
            mapping_id: Mapping the action ran for, None for org-wide summaries
            action: What happened
            details: Action-specific payload (counts, identifiers)
            status: Outcome of the action
            error: Error message, for failures

        Returns:
            The stored SyncLog entry
        """
        entry = SyncLog(
            organization_id=organization_id,
            mapping_id=mapping_id,
            action=SyncLogAction(action),
            details=details or {},
            status=SyncStatus(status),
            error=error,
        )
        stored = await self.repository.append_sync_log(entry)

        log_method = self._logger.info if entry.status == SyncStatus.SUCCESS else self._logger.warning
        log_method(
            "Sync audit entry",
            sync_log_id=entry.id,
            organization_id=organization_id,
            mapping_id=mapping_id,
            action=entry.action.value,
            status=entry.status.value,
            details=sanitize_log_input(entry.details),
            error=sanitize_log_input(error),
        )
        return stored

    async def get_sync_logs(
        self,
        organization_id: str,
        mapping_id: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> SyncLogPage:
        """Read sync log entries, newest first.

        Args:
            organization_id: Tenant to read
            mapping_id: Only entries of this mapping
            limit: Page size
            cursor: ID of the last entry of the previous page

        Returns:
            SyncLogPage; ``next_cursor`` is set while more entries remain
        """
        page_size = limit if limit is not None else self.default_page_size
        entries = await self.repository.list_sync_logs(
            organization_id,
            mapping_id=mapping_id,
            limit=page_size + 1,
            cursor=cursor,
        )

        items = entries[:page_size]
        next_cursor = items[-1].id if len(entries) > page_size and items else None
        return SyncLogPage(items=items, next_cursor=next_cursor)
