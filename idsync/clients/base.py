"""Shared HTTP plumbing for identity provider clients: throttling, retries, error mapping."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

import httpx
import structlog
from asyncio_throttle import Throttler
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from idsync.clients.exceptions import (
    APIError,
    AuthenticationError,
    ClientError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
)
from idsync.version import __version__

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_RETRY_WAIT_SECONDS = 60

_STATUS_ERRORS: Dict[int, Type[APIError]] = {
    401: AuthenticationError,
    404: ResourceNotFoundError,
    429: RateLimitError,
}


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, APIError) and error.retryable


def error_for_response(response: httpx.Response, path: str) -> APIError:
    """Build the APIError matching a non-2xx response.

    Args:
        response: Failed HTTP response
        path: Requested path, used in the message

    Returns:
        APIError subclass chosen by status code
    """
    status = response.status_code
    error_class = _STATUS_ERRORS.get(status)
    if error_class is None:
        if 400 <= status < 500:
            error_class = ClientError
        elif status >= 500:
            error_class = ServerError
        else:
            error_class = APIError

    message = f"{error_class.__name__} on {path}: HTTP {status}"
    if error_class is RateLimitError:
        retry_after = response.headers.get("Retry-After", "")
        return RateLimitError(
            message,
            status_code=status,
            response_text=response.text,
            retry_after=int(retry_after) if retry_after.isdigit() else None,
        )
    return error_class(message, status_code=status, response_text=response.text)


class BaseAPIClient(ABC):
    """Rate-limited, retrying JSON client over ``httpx.AsyncClient``.

    Subclasses provide the authentication headers. Requests are throttled to
    ``rate_limit_per_minute``; server errors, network failures and 429s are
    retried with exponential backoff, everything else fails immediately.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: int = 30,
        rate_limit_per_minute: int = 100,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, without trailing slash
            timeout_seconds: Per-request timeout
            rate_limit_per_minute: Maximum requests per minute
            max_retries: Retries after the first attempt
            retry_delay_seconds: Initial backoff delay
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "User-Agent": f"identity-group-sync/{__version__}",
                "Accept": "application/json",
            },
            transport=transport,
        )
        self._throttler = Throttler(rate_limit=rate_limit_per_minute, period=60)
        self._request_count = 0

        self._logger = logger.bind(client_type=self.__class__.__name__, base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    @abstractmethod
    async def _get_auth_headers(self) -> Dict[str, str]:
        """Return the headers authenticating a request."""

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """Send one request and map failures onto the APIError family.

        Raises:
            APIError: For non-2xx responses and transport failures
        """
        headers = await self._get_auth_headers() if authenticated else {}

        async with self._throttler:
            self._request_count += 1
            request_id = f"req_{self._request_count}"
            self._logger.debug("Sending request", request_id=request_id, method=method, path=path, params=params)

            try:
                response = await self._client.request(method, path, params=params, data=data, headers=headers)
            except httpx.RequestError as e:
                self._logger.warning("Request failed", request_id=request_id, path=path, error=str(e))
                raise NetworkError(f"Network error on {path}: {e}") from e

        self._logger.debug("Received response", request_id=request_id, status_code=response.status_code)
        if response.is_success:
            return response
        raise error_for_response(response, path)

    async def with_retry(self, operation_name: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation``, retrying while it raises a retryable APIError.

        Raises:
            APIError: The last error once retries are exhausted, or the first
                non-retryable one
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_exponential(
                    multiplier=self.retry_delay_seconds,
                    min=self.retry_delay_seconds,
                    max=MAX_RETRY_WAIT_SECONDS,
                ),
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        self._logger.info(
                            "Retrying request",
                            operation=operation_name,
                            attempt=attempt.retry_state.attempt_number,
                        )
                    return await operation()
        except APIError as e:
            self._logger.error(
                "Request failed",
                operation=operation_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def post_form(self, path: str, data: Dict[str, Any]) -> httpx.Response:
        """Unauthenticated form POST (token endpoints)."""
        return await self._send("POST", path, data=data, authenticated=False)

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET with retries, returning the decoded JSON body.

        Raises:
            APIError: If the request fails or the body is not JSON
        """
        response = await self.with_retry(f"GET {path}", lambda: self._send("GET", path, params=params))
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON from {path}: {e}") from e
