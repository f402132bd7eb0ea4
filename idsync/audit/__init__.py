"""Audit trail of sync actions."""

from .logger import SyncAuditLogger

__all__ = ["SyncAuditLogger"]
