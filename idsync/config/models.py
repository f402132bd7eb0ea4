"""Main configuration model for identity-group-sync."""

from pydantic import BaseModel, Field

from .api_models import ProviderConfig, WebhookConfig
from .audit_models import AuditConfig, StateConfig


class SyncConfig(BaseModel):
    """Main synchronization configuration. Every section has defaults."""

    provider: ProviderConfig = Field(
        default_factory=ProviderConfig,
        description="Identity provider client configuration"
    )
    webhook: WebhookConfig = Field(
        default_factory=WebhookConfig,
        description="Inbound webhook configuration"
    )
    audit: AuditConfig = Field(
        default_factory=AuditConfig,
        description="Audit and logging configuration"
    )
    state: StateConfig = Field(
        default_factory=StateConfig,
        description="Local state configuration"
    )
