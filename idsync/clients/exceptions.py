"""Error taxonomy of the identity sync engine.

HTTP failures of the provider API are ``APIError`` subclasses chosen by status
code; each class says whether the request is worth retrying. Engine-level
failures (bad input, unknown entities, state and webhook problems) are plain
exceptions raised at the seam where they are detected.
"""

from typing import Optional

RESPONSE_PREVIEW_LENGTH = 200


class APIError(Exception):
    """A call to the identity provider API failed."""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code, when a response was received
            response_text: Response body, when a response was received
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_text = response_text

    def __str__(self) -> str:
        text = self.message
        if self.status_code:
            text += f" | Status: {self.status_code}"
        if self.response_text:
            preview = self.response_text[:RESPONSE_PREVIEW_LENGTH]
            if len(self.response_text) > RESPONSE_PREVIEW_LENGTH:
                preview += "..."
            text += f" | Response: {preview}"
        return text


class AuthenticationError(APIError):
    """Bearer token or client credentials were rejected (401)."""


class ClientError(APIError):
    """The provider rejected the request (4xx)."""


class ResourceNotFoundError(ClientError):
    """Workgroup or endpoint does not exist (404)."""


class RateLimitError(ClientError):
    """Too many requests (429)."""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(message, status_code, response_text)
        self.retry_after = retry_after


class ServerError(APIError):
    """The provider failed to answer (5xx)."""

    retryable = True


class NetworkError(APIError):
    """No response was received (connection, DNS or timeout failure)."""

    retryable = True


class IntegrationError(APIError):
    """A live call to the identity provider failed.

    Distinct from "not configured": an organization without credentials never
    raises this, it is served from the built-in dataset instead.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code, response_text)
        self.provider = provider


class ConfigurationError(Exception):
    """The configuration file is missing, malformed or invalid."""


class ValidationError(Exception):
    """Input was rejected, e.g. a mapping whose target does not exist."""


class NotFoundError(Exception):
    """An entity does not exist within the calling organization."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id


class StateError(Exception):
    """The local state file could not be read or written."""


class WebhookError(Exception):
    """A webhook request must be rejected."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "BAD_REQUEST",
    ) -> None:
        """Initialize webhook error.

        Args:
            message: Error message
            status_code: HTTP status the transport should answer with
            code: Machine-readable error code
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
