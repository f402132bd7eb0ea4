"""Tests for identity provider clients and per-organization client selection."""

import json

import httpx
import pytest
from pydantic import SecretStr

from idsync.clients.exceptions import IntegrationError
from idsync.clients.factory import IdentityClientFactory, ProviderCredentials
from idsync.clients.identity_provider import BuiltinDirectoryClient
from idsync.clients.sailpoint import SailPointClient
from idsync.config.api_models import ProviderConfig
from tests.conftest import ORG_A

TENANT_URL = "https://acme.api.identitynow.com"

WORKGROUPS = [
    {"id": "wg-1", "name": "Engineering", "description": "Engineers", "memberCount": 3},
    {"id": "wg-2", "name": "Finance", "description": "Finance team", "memberCount": 1},
    {"id": "wg-3", "name": "Platform Engineering", "description": "", "memberCount": 2},
]


def _json(data, status_code=200):
    return httpx.Response(status_code, content=json.dumps(data), headers={"Content-Type": "application/json"})


def _paged(items, request):
    offset = int(request.url.params["offset"])
    limit = int(request.url.params["limit"])
    return _json(items[offset:offset + limit])


def _client(handler, **kwargs):
    kwargs.setdefault("access_token", SecretStr("stored-token"))
    kwargs.setdefault("max_retries", 0)
    return SailPointClient(
        tenant_url=TENANT_URL,
        client_id="client-id",
        client_secret=SecretStr("client-secret"),
        retry_delay_seconds=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestBuiltinDirectoryClient:
    """Test the built-in dataset."""

    @pytest.mark.asyncio
    async def test_all_groups(self):
        groups = await BuiltinDirectoryClient().list_groups()

        assert [g.id for g in groups] == [f"sp-grp-00{i}" for i in range(1, 7)]

    @pytest.mark.asyncio
    async def test_search_matches_name(self):
        groups = await BuiltinDirectoryClient().list_groups(search="eng")

        assert {g.name for g in groups} == {"Engineering Team", "QA Engineers"}

    @pytest.mark.asyncio
    async def test_search_matches_description_case_insensitively(self):
        groups = await BuiltinDirectoryClient().list_groups(search="ACCESS")

        assert len(groups) == 5
        assert "sp-grp-001" not in {g.id for g in groups}

    @pytest.mark.asyncio
    async def test_limit(self):
        assert len(await BuiltinDirectoryClient().list_groups(limit=2)) == 2
        assert len(await BuiltinDirectoryClient(default_limit=3).list_groups()) == 3

    @pytest.mark.asyncio
    async def test_members(self):
        members = await BuiltinDirectoryClient().list_group_members("sp-grp-002")

        assert [m.email for m in members] == ["alice@example.com", "dave@example.com"]

    @pytest.mark.asyncio
    async def test_unknown_group_has_no_members(self):
        assert await BuiltinDirectoryClient().list_group_members("sp-grp-006") == []


class TestProviderCredentials:
    """Test parsing of stored credential records."""

    def test_camel_case_record(self):
        credentials = ProviderCredentials.from_config(
            {"tenantUrl": TENANT_URL + "/", "clientId": "id", "clientSecret": "secret"}
        )

        assert credentials.tenant_url == TENANT_URL
        assert credentials.client_secret.get_secret_value() == "secret"
        assert credentials.access_token is None

    def test_snake_case_record_with_token(self):
        credentials = ProviderCredentials.from_config(
            {
                "tenant_url": TENANT_URL,
                "client_id": "id",
                "client_secret": "secret",
                "access_token": "token",
            }
        )

        assert credentials.access_token.get_secret_value() == "token"

    @pytest.mark.parametrize(
        "config",
        [
            None,
            {},
            {"tenantUrl": TENANT_URL, "clientId": "id"},
            {"tenantUrl": "", "clientId": "id", "clientSecret": "secret"},
            {"tenantUrl": "not a url", "clientId": "id", "clientSecret": "secret"},
        ],
    )
    def test_incomplete_records(self, config):
        assert ProviderCredentials.from_config(config) is None


class TestIdentityClientFactory:
    """Test live/built-in client selection."""

    @pytest.mark.asyncio
    async def test_no_credentials_uses_builtin(self, store):
        client = await IdentityClientFactory(store).get_client(ORG_A)

        assert isinstance(client, BuiltinDirectoryClient)

    @pytest.mark.asyncio
    async def test_active_credentials_use_sailpoint(self, store):
        store.set_integration_config(
            ORG_A, {"tenantUrl": TENANT_URL, "clientId": "id", "clientSecret": "secret"}
        )

        client = await IdentityClientFactory(store, ProviderConfig(page_size=100)).get_client(ORG_A)
        try:
            assert isinstance(client, SailPointClient)
            assert client.base_url == TENANT_URL
            assert client.page_size == 100
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_inactive_credentials_use_builtin(self, store):
        store.set_integration_config(
            ORG_A,
            {"tenantUrl": TENANT_URL, "clientId": "id", "clientSecret": "secret"},
            is_active=False,
        )

        assert isinstance(await IdentityClientFactory(store).get_client(ORG_A), BuiltinDirectoryClient)

    @pytest.mark.asyncio
    async def test_partial_credentials_use_builtin(self, store):
        store.set_integration_config(ORG_A, {"tenantUrl": TENANT_URL})

        assert isinstance(await IdentityClientFactory(store).get_client(ORG_A), BuiltinDirectoryClient)

    @pytest.mark.asyncio
    async def test_credentials_of_other_provider_ignored(self, store):
        store.set_integration_config(
            ORG_A,
            {"tenantUrl": TENANT_URL, "clientId": "id", "clientSecret": "secret"},
            provider="okta",
        )

        assert isinstance(await IdentityClientFactory(store).get_client(ORG_A), BuiltinDirectoryClient)


class TestSailPointClient:
    """Test the live client against a mocked transport."""

    @pytest.mark.asyncio
    async def test_list_groups_with_stored_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _paged(WORKGROUPS, request)

        async with _client(handler) as client:
            groups = await client.list_groups(search="engineering")

        assert [g.id for g in groups] == ["wg-1", "wg-3"]
        assert groups[0].member_count == 3
        assert seen[0].url.path == "/v3/workgroups"
        assert seen[0].headers["Authorization"] == "Bearer stored-token"

    @pytest.mark.asyncio
    async def test_pagination(self):
        offsets = []

        def handler(request):
            offsets.append(int(request.url.params["offset"]))
            return _paged(WORKGROUPS, request)

        async with _client(handler, page_size=2) as client:
            groups = await client.list_groups()

        assert [g.id for g in groups] == ["wg-1", "wg-2", "wg-3"]
        assert offsets == [0, 2]

    @pytest.mark.asyncio
    async def test_group_limit(self):
        async with _client(lambda request: _paged(WORKGROUPS, request), default_limit=2) as client:
            assert len(await client.list_groups()) == 2
            assert len(await client.list_groups(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_list_group_members(self):
        members = [
            {"id": "id-1", "email": "alice@example.com", "displayName": "Alice Johnson"},
            {"id": "id-2", "email": "bob@example.com", "name": "bob.smith"},
        ]

        def handler(request):
            assert request.url.path == "/v3/workgroups/wg-1/members"
            return _paged(members, request)

        async with _client(handler) as client:
            result = await client.list_group_members("wg-1")

        assert [(m.email, m.display_name) for m in result] == [
            ("alice@example.com", "Alice Johnson"),
            ("bob@example.com", "bob.smith"),
        ]

    @pytest.mark.asyncio
    async def test_group_id_is_escaped_in_path(self):
        requested = []

        def handler(request):
            requested.append(request.url)
            return _paged([], request)

        async with _client(handler) as client:
            assert await client.list_group_members("wg/1?limit=1") == []

        url = requested[0]
        assert url.raw_path.split(b"?")[0] == b"/v3/workgroups/wg%2F1%3Flimit%3D1/members"
        assert url.params["limit"] != "1"

    @pytest.mark.asyncio
    async def test_client_credentials_token_requested_once(self):
        token_requests = []
        authorizations = []

        def handler(request):
            if request.url.path == "/oauth/token":
                token_requests.append(request.content.decode())
                return _json({"access_token": "issued-token", "token_type": "bearer"})
            authorizations.append(request.headers["Authorization"])
            return _paged(WORKGROUPS, request)

        async with _client(handler, access_token=None) as client:
            await client.list_groups()
            await client.list_group_members("wg-1")

        assert len(token_requests) == 1
        assert "grant_type=client_credentials" in token_requests[0]
        assert "client_id=client-id" in token_requests[0]
        assert authorizations == ["Bearer issued-token", "Bearer issued-token"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 404, 500])
    async def test_http_errors_become_integration_errors(self, status_code):
        async with _client(lambda request: _json({"error": "nope"}, status_code)) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.list_groups()

        assert exc_info.value.provider == "sailpoint"
        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_failed_token_request(self):
        async with _client(lambda request: _json({"error": "invalid_client"}, 401), access_token=None) as client:
            with pytest.raises(IntegrationError):
                await client.list_group_members("wg-1")

    @pytest.mark.asyncio
    async def test_non_list_response(self):
        async with _client(lambda request: _json({"items": []})) as client:
            with pytest.raises(IntegrationError, match="Expected list response"):
                await client.list_groups()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(IntegrationError, match="Network error"):
                await client.list_group_members("wg-1")

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return _json({"error": "unavailable"}, 503)
            return _paged(WORKGROUPS, request)

        async with _client(handler, max_retries=1) as client:
            groups = await client.list_groups()

        assert len(groups) == 3
        assert len(calls) == 2
