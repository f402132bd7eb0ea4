"""Tests for the inbound webhook handler."""

import json
from unittest.mock import AsyncMock

import pytest
from pydantic import SecretStr

from idsync.config.api_models import WebhookConfig
from idsync.core.models import SyncLogAction
from idsync.webhook import WebhookHandler
from tests.conftest import ORG_A

SECRET = "webhook-secret"
SECRET_HEADER = "X-Identity-Sync-Webhook-Secret"


@pytest.fixture
def handler(service):
    return WebhookHandler(service, ORG_A, WebhookConfig(secret=SecretStr(SECRET)))


def _body(**overrides):
    payload = {
        "eventType": "ACCESS_REQUEST",
        "userEmail": "alice@example.com",
        "groupId": "ext-1",
        "action": "approved",
    }
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


class TestWebhookAuthentication:
    """Test secret verification."""

    @pytest.mark.asyncio
    async def test_missing_secret_header(self, handler):
        response = await handler.handle({}, _body())

        assert response.status_code == 400
        assert response.body["error"]["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_no_secret_configured(self, service):
        handler = WebhookHandler(service, ORG_A)

        response = await handler.handle({SECRET_HEADER: SECRET}, _body())

        assert response.status_code == 404
        assert response.body["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_wrong_secret(self, handler, store, add_mapping):
        add_mapping()

        response = await handler.handle({SECRET_HEADER: "guess"}, _body())

        assert response.status_code == 401
        assert response.body["error"]["code"] == "UNAUTHORIZED"
        assert await store.list_group_member_ids(ORG_A, "grp-eng") == []

    @pytest.mark.asyncio
    async def test_header_name_is_case_insensitive(self, handler):
        response = await handler.handle({SECRET_HEADER.lower(): SECRET}, _body())

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_custom_header(self, service):
        handler = WebhookHandler(
            service,
            ORG_A,
            WebhookConfig(secret=SecretStr(SECRET), secret_header="X-Hook-Token"),
        )

        assert (await handler.handle({"X-Hook-Token": SECRET}, _body())).status_code == 200
        assert (await handler.handle({SECRET_HEADER: SECRET}, _body())).status_code == 400


class TestWebhookPayload:
    """Test payload parsing and dispatch."""

    @pytest.mark.asyncio
    async def test_invalid_json(self, handler):
        response = await handler.handle({SECRET_HEADER: SECRET}, b"{not json")

        assert response.status_code == 400
        assert response.body["error"]["message"] == "Invalid JSON payload"

    @pytest.mark.asyncio
    async def test_non_object_payload(self, handler):
        response = await handler.handle({SECRET_HEADER: SECRET}, b"[1, 2]")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_action(self, handler):
        response = await handler.handle({SECRET_HEADER: SECRET}, _body(action="escalated"))

        assert response.status_code == 400
        assert response.body["error"]["message"] == "Invalid event payload"

    @pytest.mark.asyncio
    async def test_approved_event(self, handler, store, add_mapping):
        add_mapping()

        response = await handler.handle(
            {SECRET_HEADER: SECRET, "X-Request-ID": "req-123"},
            _body(),
        )

        assert response.status_code == 200
        assert response.body == {
            "data": {
                "received": True,
                "processed": True,
                "action": "approved",
                "requestId": "req-123",
            }
        }
        assert response.headers["X-Request-ID"] == "req-123"
        assert await store.list_group_member_ids(ORG_A, "grp-eng") == ["u-alice"]
        assert store.sync_logs[-1].action == SyncLogAction.USER_ADDED

    @pytest.mark.asyncio
    async def test_unprocessed_event_is_still_acknowledged(self, handler):
        response = await handler.handle({SECRET_HEADER: SECRET}, _body(groupId="unmapped"))

        assert response.status_code == 200
        assert response.body["data"]["processed"] is False
        assert response.body["data"]["requestId"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_string_body(self, handler):
        response = await handler.handle({SECRET_HEADER: SECRET}, _body().decode("utf-8"))

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_engine_failure(self, handler, service):
        service.handle_event = AsyncMock(side_effect=RuntimeError("database is locked"))

        response = await handler.handle({SECRET_HEADER: SECRET}, _body())

        assert response.status_code == 500
        assert response.body["error"]["code"] == "INTERNAL_ERROR"
        assert "database is locked" not in response.body["error"]["message"]
