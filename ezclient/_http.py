"""Internal HTTP handling utilities for the EZSubcontractor client.

This module provides the low-level HTTP communication layer used by all
sub-clients. It handles:
- Attaching the session's bearer token (and refusing to send without one)
- Response envelope parsing and error mapping
- Retry logic with exponential backoff
- Connection management

This is an internal module and should not be imported directly by users.
"""

import asyncio
import logging
from typing import Any, Literal

import httpx

from ezclient.exceptions import (
    APIError,
    AuthError,
    ConnectionError,
    MalformedResponseError,
    NotFoundError,
    ServerError,
    TimeoutError,
)
from ezclient.models import Envelope, normalize_message
from ezclient.session import Session

logger = logging.getLogger(__name__)


HttpMethod = Literal["GET", "POST", "DELETE"]

# Gateway failures worth another attempt when retries are on.
RETRYABLE_STATUS_CODES = {502, 503, 504}

DEFAULT_RETRY_BACKOFF_BASE = 0.5  # seconds
DEFAULT_RETRY_BACKOFF_MAX = 30.0  # seconds


def _parse_error_response(response: httpx.Response) -> tuple[str, dict | None]:
    """Parse an error response to extract a message and details.

    The backend answers with ``{"success": false, "message": ...}`` where
    the message is a string or a list of strings, sometimes alongside a
    Laravel-style ``errors`` bag. Framework errors may use ``detail`` or
    ``error`` instead. Falls back to the raw text, then to the status code.

    Args:
        response: The HTTP response to parse.

    Returns:
        A tuple of (message, details).
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        if text:
            return text, None
        return f"HTTP {response.status_code} error", None

    if isinstance(body, dict):
        errors = body.get("errors")
        details = {"errors": errors} if isinstance(errors, dict) else None

        for key in ("message", "detail", "error"):
            message = normalize_message(body.get(key))
            if message:
                return message, details

        if details:
            return normalize_message(errors) or f"HTTP {response.status_code} error", details

    message = normalize_message(body)
    return message or f"HTTP {response.status_code} error", None


def _raise_for_status(response: httpx.Response, session: Session | None = None) -> None:
    """Raise an appropriate exception for error status codes.

    Args:
        response: The HTTP response to check.
        session: Session to clear when the backend rejects the credential.

    Raises:
        AuthError: For HTTP 401 responses (after clearing the session).
        NotFoundError: For HTTP 404 responses.
        ServerError: For HTTP 5xx responses.
        APIError: For other HTTP 4xx responses.
    """
    if response.is_success:
        return

    message, details = _parse_error_response(response)
    status_code = response.status_code

    try:
        response_body = response.json()
    except ValueError:
        response_body = response.text

    if status_code == 401:
        if session is not None:
            session.clear()
        raise AuthError(message or "Your session has expired. Please log in again.", status_code=401)
    elif status_code == 404:
        raise NotFoundError(
            message=message,
            details=details,
            response_body=response_body,
        )
    elif status_code >= 500:
        raise ServerError(
            message=message,
            status_code=status_code,
            details=details,
            response_body=response_body,
        )
    else:
        raise APIError(
            message=message,
            status_code=status_code,
            details=details,
            response_body=response_body,
        )


def _parse_envelope(response: httpx.Response) -> Envelope:
    """Read a successful response as an envelope.

    An empty body counts as a bare success. A body that is not JSON, or
    JSON that is not an object, is malformed. ``success: false`` is
    raised as an APIError even on a 2xx status.

    Args:
        response: A response whose status is 2xx.

    Returns:
        The parsed envelope.

    Raises:
        MalformedResponseError: If the body is not a JSON object.
        APIError: If the envelope reports ``success: false``.
    """
    if not response.content:
        return Envelope(success=True)

    try:
        body = response.json()
    except ValueError as e:
        raise MalformedResponseError(
            message="The server sent a response that could not be read.",
            status_code=response.status_code,
            body=response.text[:500],
        ) from e

    if isinstance(body, list):
        return Envelope(success=True, data=body)
    if not isinstance(body, dict):
        raise MalformedResponseError(
            message="The server sent a response that could not be read.",
            status_code=response.status_code,
            body=response.text[:500],
        )

    envelope = Envelope.model_validate(body)
    if not envelope.success:
        raise APIError(
            message=envelope.text or "The request was not successful.",
            status_code=response.status_code,
            response_body=body,
        )
    return envelope


def _calculate_backoff(attempt: int, base: float = DEFAULT_RETRY_BACKOFF_BASE) -> float:
    """Calculate exponential backoff delay for retry attempts.

    Uses base * 2^attempt, capped at DEFAULT_RETRY_BACKOFF_MAX seconds.

    Args:
        attempt: The retry attempt number (0-indexed).
        base: Base delay in seconds.

    Returns:
        The delay in seconds before the next retry.
    """
    delay = base * (2 ** attempt)
    return min(delay, DEFAULT_RETRY_BACKOFF_MAX)


class AsyncHTTPClient:
    """Asynchronous HTTP client for making backend API requests.

    Wraps httpx.AsyncClient with session-aware auth, envelope handling,
    error mapping and retry logic.

    Attributes:
        base_url: The base URL for all API requests.
        timeout: Request timeout in seconds.
        retry_enabled: Whether to retry on transient failures.
        max_retries: Maximum number of retry attempts.
        session: The session whose token authenticates requests.
    """

    def __init__(
        self,
        base_url: str,
        session: Session | None = None,
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            base_url: The base URL for all API requests.
            session: Session carrying the bearer token. A fresh, logged-out
                session is created when omitted.
            timeout: Request timeout in seconds.
            retry_enabled: Whether to retry on transient failures.
            max_retries: Maximum number of retry attempts.
            transport: Custom transport (e.g., MockTransport for testing).
        """
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else Session()
        self.timeout = timeout
        self.retry_enabled = retry_enabled
        self.max_retries = max_retries

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager and close client."""
        await self.close()

    async def request(
        self,
        method: HttpMethod,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: list[tuple[str, Any]] | None = None,
        auth: bool = True,
    ) -> Envelope:
        """Make an async HTTP request and return the parsed envelope.

        Args:
            method: The HTTP method (GET, POST, etc.).
            path: The URL path (will be appended to base_url).
            params: Query parameters to include in the URL.
            json: JSON body to send with the request.
            data: Form fields to send (form-encoded, or multipart with files).
            files: Multipart file parts as (field, file) pairs.
            auth: Whether the endpoint requires the bearer token.

        Returns:
            The response envelope.

        Raises:
            AuthError: If no token is present for an authenticated call,
                or the backend answers 401.
            ConnectionError: If the connection fails.
            TimeoutError: If the request times out.
            MalformedResponseError: If the body is not a JSON envelope.
            APIError: If the server returns an error response.
        """
        url = f"{self.base_url}{path}"

        headers: dict[str, str] = {}
        if auth:
            if not self.session.is_authenticated:
                raise AuthError("You need to log in to continue.")
            headers.update(self.session.authorization_header())

        # Filter out None values from params and form fields
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        if data:
            data = {k: _form_value(v) for k, v in data.items() if v is not None}

        retries_left = self.max_retries if self.retry_enabled else 0
        attempt = 0
        while True:
            try:
                response = await self._client.request(
                    method=method,
                    url=path,
                    params=params,
                    json=json,
                    data=data,
                    files=files,
                    headers=headers,
                )
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                error = self._transport_error(e, url)
                if attempt >= retries_left:
                    raise error from e
                delay = _calculate_backoff(attempt)
                logger.warning(f"{method} {path} failed ({error.message}), retrying in {delay}s")
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES or attempt >= retries_left:
                    _raise_for_status(response, self.session if auth else None)
                    return _parse_envelope(response)
                delay = _calculate_backoff(attempt)
                logger.warning(f"{method} {path} answered {response.status_code}, retrying in {delay}s")
            attempt += 1
            await asyncio.sleep(delay)

    def _transport_error(self, exc: httpx.HTTPError, url: str) -> ConnectionError | TimeoutError:
        if isinstance(exc, httpx.TimeoutException):
            return TimeoutError(f"Request to {url} timed out", timeout=self.timeout, url=url)
        return ConnectionError(f"Could not reach {url}", url=url, cause=exc)

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Envelope:
        """Make an async GET request."""
        return await self.request("GET", path, params=params, auth=auth)

    async def post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: list[tuple[str, Any]] | None = None,
        auth: bool = True,
    ) -> Envelope:
        """Make an async POST request.

        Args:
            path: The URL path.
            json: JSON body to send.
            params: Query parameters.
            data: Form fields.
            files: Multipart file parts.
            auth: Whether the endpoint requires the bearer token.

        Returns:
            The response envelope.
        """
        return await self.request(
            "POST", path, params=params, json=json, data=data, files=files, auth=auth
        )

    async def delete(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Envelope:
        """Make an async DELETE request."""
        return await self.request("DELETE", path, params=params, auth=auth)


def _form_value(value: Any) -> Any:
    # Form bodies carry booleans the way the backend expects them.
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    return value
