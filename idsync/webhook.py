"""Inbound identity provider webhook: secret verification and event dispatch."""

import json
import secrets
import uuid
from typing import Any, Dict, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from idsync.clients.exceptions import WebhookError
from idsync.config.api_models import WebhookConfig
from idsync.core.models import EventPayload
from idsync.core.service import IdentitySyncService

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class WebhookResponse(BaseModel):
    """Status code, JSON body and headers for the web transport to send back."""

    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = Field(default_factory=dict)


class WebhookHandler:
    """Verifies and dispatches approve/revoke events for one organization."""

    def __init__(
        self,
        service: IdentitySyncService,
        organization_id: str,
        config: Optional[WebhookConfig] = None,
    ) -> None:
        """Initialize the handler.

        Args:
            service: Engine facade the events are handed to
            organization_id: Organization the configured secret belongs to
            config: Shared secret and header name
        """
        self.service = service
        self.organization_id = organization_id
        self.config = config or WebhookConfig()
        self._logger = logger.bind(component="webhook", organization_id=organization_id)

    async def handle(self, headers: Mapping[str, str], body: Union[bytes, str]) -> WebhookResponse:
        """Process one webhook request.

        Args:
            headers: Request headers (matched case-insensitively)
            body: Raw request body

        Returns:
            WebhookResponse with status 200 on success, otherwise 400, 401, 404 or 500
        """
        normalized = {key.lower(): value for key, value in headers.items()}
        request_id = normalized.get(REQUEST_ID_HEADER.lower()) or str(uuid.uuid4())
        log = self._logger.bind(request_id=request_id)
        response_headers = {REQUEST_ID_HEADER: request_id}

        try:
            payload = self._verify_and_parse(normalized, body)
            log.info("Webhook received", event_type=payload.event_type)

            result = await self.service.handle_event(self.organization_id, payload)
        except WebhookError as e:
            log.warning("Webhook rejected", code=e.code, error=e.message)
            return WebhookResponse(
                status_code=e.status_code,
                body={"error": {"code": e.code, "message": e.message}},
                headers=response_headers,
            )
        except Exception as e:
            log.error("Webhook processing error", error=str(e), error_type=type(e).__name__)
            return WebhookResponse(
                status_code=500,
                body={"error": {"code": "INTERNAL_ERROR", "message": "Failed to process webhook"}},
                headers=response_headers,
            )

        return WebhookResponse(
            status_code=200,
            body={
                "data": {
                    "received": True,
                    "processed": result.processed,
                    "action": result.action,
                    "requestId": request_id,
                }
            },
            headers=response_headers,
        )

    def _verify_and_parse(self, headers: Dict[str, str], body: Union[bytes, str]) -> EventPayload:
        """Check the shared secret and parse the event payload.

        Raises:
            WebhookError: If the request must be rejected
        """
        header_name = self.config.secret_header
        provided = headers.get(header_name.lower())
        if not provided:
            raise WebhookError(f"Missing {header_name} header", 400, "BAD_REQUEST")

        if self.config.secret is None or not self.config.secret.get_secret_value():
            raise WebhookError("No webhook secret configured", 404, "NOT_FOUND")

        expected = self.config.secret.get_secret_value()
        if not secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            raise WebhookError("Invalid webhook secret", 401, "UNAUTHORIZED")

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise WebhookError("Invalid JSON payload", 400, "BAD_REQUEST") from None

        if not isinstance(data, dict):
            raise WebhookError("Invalid event payload", 400, "BAD_REQUEST")

        try:
            return EventPayload.model_validate(data)
        except PydanticValidationError:
            raise WebhookError("Invalid event payload", 400, "BAD_REQUEST") from None
