"""Exception hierarchy for the EZSubcontractor API client.

This module defines all exceptions that can be raised by the client library.
The hierarchy is designed to allow catching specific error types or broader
categories as needed.

Exception Hierarchy:
    EZClientError (base)
    ├── ConnectionError - Network/connection failures
    ├── TimeoutError - Request timeout
    ├── ValidationError - Input rejected locally, before any request
    ├── AuthError - Missing or expired credential (pre-flight or HTTP 401)
    ├── IntegrationError - Payment tokenization failed
    ├── MalformedResponseError - Body is not a JSON envelope
    └── APIError - Server returned an error response or ``success: false``
        ├── NotFoundError (HTTP 404)
        └── ServerError (HTTP 5xx)

Example:
    Catching specific errors::

        try:
            await client.cards.set_default(card_id)
        except AuthError:
            # Token expired - send the user back to the login screen
            ...
        except APIError as e:
            print(f"Backend refused: {e.message}")

    Catching all client errors::

        try:
            await client.projects.save(42)
        except EZClientError as e:
            print(f"Client error: {e}")
"""

from typing import Any


class EZClientError(Exception):
    """Base exception for all client errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class ConnectionError(EZClientError):
    """Failed to connect to the backend.

    Attributes:
        message: Human-readable error description.
        url: The URL that failed to connect.
        cause: The underlying exception that caused the connection failure.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.url = url
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including URL if available."""
        if self.url:
            return f"{self.message} (url: {self.url})"
        return self.message


class TimeoutError(EZClientError):
    """Request timed out.

    Raised when a request takes longer than the configured timeout.

    Attributes:
        message: Human-readable error description.
        timeout: The timeout value in seconds.
        url: The URL that timed out.
    """

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        url: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.url = url
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including timeout if available."""
        parts = []
        if self.timeout is not None:
            parts.append(f"timeout: {self.timeout}s")
        if self.url:
            parts.append(f"url: {self.url}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class ValidationError(EZClientError):
    """Input was rejected locally before any request was made.

    Raised by sub-clients and workflows when a required field is missing
    or invalid. No network call is issued and no state is mutated.

    Attributes:
        message: Human-readable error description.
        field: Name of the offending field, if known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class AuthError(EZClientError):
    """Missing or expired credential.

    Raised pre-flight when an authenticated call is attempted without a
    token, and after the backend answers HTTP 401. In the latter case the
    session has already been cleared by the HTTP layer.

    Attributes:
        message: Human-readable error description.
        status_code: 401 when raised from a response, None when pre-flight.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class IntegrationError(EZClientError):
    """Payment tokenization failed.

    The message is the processor's own message when it sent one.

    Attributes:
        message: Human-readable error description.
        code: Processor error code, if any.
        decline_code: Card decline code, if any.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        decline_code: str | None = None,
    ) -> None:
        self.code = code
        self.decline_code = decline_code
        super().__init__(message)


class MalformedResponseError(EZClientError):
    """The response body could not be read as a JSON envelope.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code of the response.
        body: Raw response text for debugging.
    """

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class APIError(EZClientError):
    """Backend returned an error response.

    Raised for HTTP 4xx/5xx responses and for 2xx responses whose envelope
    carries ``success: false``.

    Attributes:
        message: Human-readable error message, taken from the body when present.
        status_code: HTTP status code from the server.
        details: Additional error details from the response (if available).
        response_body: Raw response body for debugging.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.details = details
        self.response_body = response_body
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including status code."""
        return f"[HTTP {self.status_code}] {self.message}"


class NotFoundError(APIError):
    """Resource not found (HTTP 404)."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=404,
            details=details,
            response_body=response_body,
        )


class ServerError(APIError):
    """Server-side error (HTTP 5xx).

    If retry logic is enabled, 502/503/504 responses are retried before
    this is raised.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            details=details,
            response_body=response_body,
        )
