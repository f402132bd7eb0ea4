"""Per-organization selection of the identity provider client."""

from typing import Any, Mapping, Optional

import httpx
import structlog
from pydantic import BaseModel, SecretStr

from idsync.clients.identity_provider import BuiltinDirectoryClient, IdentityProviderClient
from idsync.clients.sailpoint import SailPointClient
from idsync.config.api_models import ProviderConfig
from idsync.core.stores import CredentialStore
from idsync.security.validation import sanitize_log_input, validate_url

logger = structlog.get_logger(__name__)


class ProviderCredentials(BaseModel):
    """Live connection details of an organization's identity provider."""

    tenant_url: str
    client_id: str
    client_secret: SecretStr
    access_token: Optional[SecretStr] = None

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> Optional["ProviderCredentials"]:
        """Build credentials from a decrypted integration config record.

        Args:
            config: Credential record (camelCase or snake_case keys), or None

        Returns:
            ProviderCredentials, or None when the record is missing, any of
            tenant URL, client ID and client secret is empty, or the tenant URL
            is not an http(s) URL
        """
        if not config:
            return None

        def pick(*keys: str) -> Optional[str]:
            for key in keys:
                value = config.get(key)
                if value:
                    return str(value)
            return None

        tenant_url = pick("tenantUrl", "tenant_url")
        client_id = pick("clientId", "client_id")
        client_secret = pick("clientSecret", "client_secret")
        if not tenant_url or not client_id or not client_secret:
            return None

        tenant_url = tenant_url.rstrip("/")
        if not validate_url(tenant_url):
            logger.warning(
                "Ignoring credentials with invalid tenant URL",
                tenant_url=sanitize_log_input(tenant_url),
            )
            return None

        access_token = pick("accessToken", "access_token")
        return cls(
            tenant_url=tenant_url,
            client_id=client_id,
            client_secret=SecretStr(client_secret),
            access_token=SecretStr(access_token) if access_token else None,
        )


class IdentityClientFactory:
    """Chooses the live client or the built-in directory for an organization."""

    def __init__(
        self,
        credential_store: CredentialStore,
        provider_config: Optional[ProviderConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the factory.

        Args:
            credential_store: Source of decrypted integration configs
            provider_config: Client tuning (timeouts, rate limit, page size)
            transport: Optional httpx transport handed to live clients
        """
        self.credential_store = credential_store
        self.provider_config = provider_config or ProviderConfig()
        self.transport = transport
        self._logger = logger.bind(credential_provider=self.provider_config.credential_provider)

    async def get_client(self, organization_id: str) -> IdentityProviderClient:
        """Resolve the identity provider client for an organization.

        Missing or partial credentials select the built-in directory; they are
        never an error.
        """
        config = await self.credential_store.get_active_config(
            organization_id, self.provider_config.credential_provider
        )
        credentials = ProviderCredentials.from_config(config)

        if credentials is None:
            self._logger.debug(
                "No live credentials, using built-in directory",
                organization_id=organization_id,
            )
            return BuiltinDirectoryClient(default_limit=self.provider_config.default_group_limit)

        self._logger.debug(
            "Using live identity provider",
            organization_id=organization_id,
            tenant_url=credentials.tenant_url,
        )
        return SailPointClient(
            tenant_url=credentials.tenant_url,
            client_id=credentials.client_id,
            client_secret=credentials.client_secret,
            access_token=credentials.access_token,
            page_size=self.provider_config.page_size,
            default_limit=self.provider_config.default_group_limit,
            timeout_seconds=self.provider_config.timeout_seconds,
            rate_limit_per_minute=self.provider_config.rate_limit_per_minute,
            max_retries=self.provider_config.max_retries,
            retry_delay_seconds=self.provider_config.retry_delay_seconds,
            transport=self.transport,
        )
