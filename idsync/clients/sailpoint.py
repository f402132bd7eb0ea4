"""SailPoint IdentityNow client for workgroup and member listing."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import structlog
from pydantic import SecretStr

from idsync.clients.base import BaseAPIClient
from idsync.clients.exceptions import APIError, IntegrationError
from idsync.clients.identity_provider import (
    DEFAULT_GROUP_LIMIT,
    IdentityProviderClient,
    filter_groups,
)
from idsync.core.models import ExternalGroup, ExternalMember
from idsync.security.validation import sanitize_log_input

logger = structlog.get_logger(__name__)

PROVIDER_NAME = "sailpoint"
MAX_PAGE_SIZE = 250


class SailPointClient(BaseAPIClient, IdentityProviderClient):
    """SailPoint IdentityNow API client.

    Authenticates with a bearer token: either the access token stored with the
    credentials, or one obtained once through the client-credentials grant.
    """

    def __init__(
        self,
        tenant_url: str,
        client_id: str,
        client_secret: SecretStr,
        access_token: Optional[SecretStr] = None,
        page_size: int = MAX_PAGE_SIZE,
        default_limit: int = DEFAULT_GROUP_LIMIT,
        timeout_seconds: int = 30,
        rate_limit_per_minute: int = 100,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        transport: Optional[Any] = None,
    ) -> None:
        """Initialize SailPoint client.

        Args:
            tenant_url: Tenant API URL (e.g. 'https://acme.api.identitynow.com')
            client_id: OAuth client ID
            client_secret: OAuth client secret
            access_token: Pre-issued bearer token, skips the token request
            page_size: Items requested per page (SailPoint max is 250)
            default_limit: Group cap used when no limit is given
            timeout_seconds: Request timeout in seconds
            rate_limit_per_minute: Maximum requests per minute
            max_retries: Maximum retry attempts
            retry_delay_seconds: Initial retry delay
            transport: Optional httpx transport
        """
        super().__init__(
            base_url=tenant_url,
            timeout_seconds=timeout_seconds,
            rate_limit_per_minute=rate_limit_per_minute,
            max_retries=max_retries,
            retry_delay_seconds=retry_delay_seconds,
            transport=transport,
        )

        self.client_id = client_id
        self._client_secret = client_secret
        self._access_token = access_token
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.default_limit = default_limit

        self._logger = logger.bind(tenant_url=self.base_url)

    async def _get_auth_headers(self) -> Dict[str, str]:
        """Get SailPoint bearer token headers, requesting a token if needed."""
        if self._access_token is None:
            self._access_token = await self._request_token()
        return {"Authorization": f"Bearer {self._access_token.get_secret_value()}"}

    async def _request_token(self) -> SecretStr:
        response = await self.with_retry(
            "POST /oauth/token",
            lambda: self.post_form(
                "/oauth/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self._client_secret.get_secret_value(),
                },
            ),
        )
        try:
            token = response.json()["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise APIError(f"Token response did not contain an access token: {e}") from e

        self._logger.debug("Obtained access token")
        return SecretStr(token)

    async def list_groups(
        self,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ExternalGroup]:
        try:
            items = await self.paginate("/v3/workgroups")
            groups = [self._to_group(item) for item in items]
        except APIError as e:
            raise self._convert_to_integration_error(e) from e

        result = filter_groups(groups, search, limit, self.default_limit)
        self._logger.debug(
            "Listed workgroups",
            search=sanitize_log_input(search),
            fetched=len(groups),
            returned=len(result),
        )
        return result

    async def list_group_members(self, group_id: str) -> List[ExternalMember]:
        try:
            items = await self.paginate(f"/v3/workgroups/{quote(group_id, safe='')}/members")
            return [self._to_member(item) for item in items]
        except APIError as e:
            raise self._convert_to_integration_error(e) from e

    async def paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Collect every item of an offset/limit paginated endpoint.

        Args:
            path: API endpoint path
            params: Extra query parameters

        Returns:
            List of all items from all pages

        Raises:
            APIError: If a request fails or a page is not a JSON list
        """
        all_items: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page_params = dict(params or {})
            page_params.update({"offset": offset, "limit": self.page_size})

            items = await self.get_json(path, params=page_params)
            if not isinstance(items, list):
                raise APIError(f"Expected list response from {path}, got {type(items).__name__}")

            all_items.extend(items)
            if len(items) < self.page_size:
                break
            offset += len(items)

        return all_items

    def _to_group(self, data: Dict[str, Any]) -> ExternalGroup:
        try:
            return ExternalGroup(
                id=str(data["id"]),
                name=data.get("name") or "",
                description=data.get("description") or "",
                member_count=data.get("memberCount") or 0,
                type=data.get("type") or "workgroup",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(f"Malformed workgroup in response: {e}") from e

    def _to_member(self, data: Dict[str, Any]) -> ExternalMember:
        try:
            return ExternalMember(
                id=str(data["id"]),
                email=data.get("email") or "",
                display_name=data.get("displayName") or data.get("name") or "",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(f"Malformed workgroup member in response: {e}") from e

    def _convert_to_integration_error(self, api_error: APIError) -> IntegrationError:
        """Convert generic API error to a SailPoint integration error."""
        return IntegrationError(
            PROVIDER_NAME,
            api_error.message,
            status_code=api_error.status_code,
            response_text=api_error.response_text,
        )
