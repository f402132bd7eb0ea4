"""Identity provider and webhook configuration models."""

from pydantic import BaseModel, Field, SecretStr

from idsync.core.stores import DEFAULT_PROVIDER


class ProviderConfig(BaseModel):
    """Identity provider API configuration.

    Tenant URL and client credentials are per organization and come from the
    credential store; this section only tunes how the live client behaves.
    """

    credential_provider: str = Field(
        DEFAULT_PROVIDER,
        description="Provider key used to look up credentials in the credential store"
    )
    timeout_seconds: int = Field(
        30,
        description="Timeout for provider API calls in seconds",
        ge=1
    )
    rate_limit_per_minute: int = Field(
        100,
        description="Rate limit for provider API calls per minute",
        ge=1
    )
    max_retries: int = Field(
        3,
        description="Maximum number of retry attempts",
        ge=0
    )
    retry_delay_seconds: float = Field(
        1.0,
        description="Initial delay between retries in seconds",
        ge=0.0
    )
    page_size: int = Field(
        250,
        description="Page size for paginated provider listings",
        ge=1,
        le=250
    )
    default_group_limit: int = Field(
        50,
        description="Maximum number of groups returned by a group listing",
        ge=1
    )


class WebhookConfig(BaseModel):
    """Inbound webhook configuration."""

    secret: SecretStr | None = Field(
        None,
        description="Shared secret the provider sends with every event"
    )
    secret_header: str = Field(
        "X-Identity-Sync-Webhook-Secret",
        description="Header carrying the shared secret"
    )
