"""Configuration package for identity-group-sync."""

from .models import SyncConfig
from .loader import ConfigLoader, find_config_file
from .api_models import ProviderConfig, WebhookConfig
from .audit_models import AuditConfig, StateConfig
from .base_models import LogLevel, LogFormat

__all__ = [
    "SyncConfig",
    "ConfigLoader",
    "find_config_file",
    "ProviderConfig",
    "WebhookConfig",
    "AuditConfig",
    "StateConfig",
    "LogLevel",
    "LogFormat",
]
